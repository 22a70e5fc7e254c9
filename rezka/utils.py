"""Small helpers shared by the resolvers and the CLI."""

_UNITS = ["B", "KB", "MB", "GB", "TB"]


def bytes_to_str(size: int) -> str:
    """Human-readable size, e.g. ``1.5 GB``."""
    value = float(size)
    for unit in _UNITS:
        if value < 1024 or unit == _UNITS[-1]:
            if unit == "B":
                return f"{int(value)} B"
            return f"{value:.1f} {unit}"
        value /= 1024
    return f"{size} B"


def to_bool(raw: object) -> bool:
    """Provider flags arrive as "0"/"1", "true"/"false" or missing."""
    if raw is None:
        return False
    return str(raw).strip().lower() in ("1", "true", "yes")

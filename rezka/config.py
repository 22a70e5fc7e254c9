"""Configuration management for Rezka CLI."""

import json
import logging
import os
from dataclasses import dataclass, asdict, fields
from pathlib import Path

logger = logging.getLogger(__name__)


def get_config_dir() -> Path:
    """Get config directory path."""
    if os.name == "nt":
        base = Path(os.environ.get("APPDATA", Path.home()))
    else:
        base = Path(os.environ.get("XDG_CONFIG_HOME", Path.home() / ".config"))
    return base / "rezka"


@dataclass
class Config:
    """Rezka CLI configuration."""
    provider_url: str = "https://rezka.ag"
    proxy_url: str = ""
    timeout: float = 10.0
    max_retries: int = 3
    retry_upstream_errors: bool = True
    cache_series_streams: bool = False
    user_agent: str = "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"

    @property
    def base_url(self) -> str:
        """Provider URL, routed through the proxy when one is configured."""
        provider = self.provider_url.rstrip("/")
        if self.proxy_url:
            return f"{self.proxy_url.rstrip('/')}/{provider}"
        return provider


_config: Config | None = None


def _apply_env(config: Config) -> Config:
    provider_url = os.environ.get("REZKA_PROVIDER_URL")
    if provider_url:
        config.provider_url = provider_url
    proxy_url = os.environ.get("REZKA_PROXY_URL")
    if proxy_url is not None:
        config.proxy_url = proxy_url
    return config


def load_config() -> Config:
    """Load configuration from file."""
    global _config
    if _config is not None:
        return _config

    config_file = get_config_dir() / "config.json"

    if config_file.exists():
        try:
            with open(config_file, "r", encoding="utf-8") as f:
                data = json.load(f)
            known = {f.name for f in fields(Config)}
            _config = Config(**{k: v for k, v in data.items() if k in known})
        except (OSError, ValueError, TypeError) as e:
            logger.warning("Failed to load config %s: %s", config_file, e)
            _config = Config()
    else:
        _config = Config()

    _config = _apply_env(_config)
    return _config


def save_config(config: Config) -> None:
    """Save configuration to file."""
    global _config
    _config = config

    config_dir = get_config_dir()
    config_dir.mkdir(parents=True, exist_ok=True)

    config_file = config_dir / "config.json"

    with open(config_file, "w", encoding="utf-8") as f:
        json.dump(asdict(config), f, indent=2)


def reset_config() -> None:
    """Forget the loaded configuration so the next call re-reads the file."""
    global _config
    _config = None


def get_config() -> Config:
    """Get current configuration."""
    return load_config()

"""YAML configuration loader with environment variable overrides.

Configuration is loaded in layers (later layers override earlier):

  1. config/config.yaml  - static defaults checked into the repo
  2. .env file           - local developer overrides (not committed)
  3. Environment vars    - set at deploy time

``load_config()`` reads the YAML file first, then deep-merges the values
derived from :class:`Settings` on top.
"""

from pathlib import Path

import yaml

from src.config.settings import Settings

_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parents[2] / "config" / "config.yaml"

DEFAULT_MAX_FILE_SIZE_MB = 10
DEFAULT_MAX_IMAGE_DIM = 2048


def load_config(path: str | Path | None = None, settings: Settings | None = None) -> dict:
    """Load YAML config and merge it with environment-based Settings.

    Args:
        path: YAML file to read. Defaults to ``config/config.yaml`` at the
              repository root. A missing file yields an empty base.
        settings: Settings to overlay. A fresh ``Settings()`` when omitted.

    Returns:
        Fully resolved configuration dictionary.
    """
    config_path = Path(path) if path is not None else _DEFAULT_CONFIG_PATH
    if config_path.exists():
        with open(config_path) as f:
            yaml_config = yaml.safe_load(f) or {}
    else:
        yaml_config = {}

    settings = settings or Settings()
    env_overrides = {
        "app": {
            "host": settings.app_host,
            "port": settings.app_port,
            "env": settings.app_env,
        },
        "pipeline": {
            "rate_limit_delay_ms": settings.rate_limit_delay_ms,
        },
        "storage": {
            "backend": settings.storage_backend,
        },
        "http": {
            "timeout_seconds": settings.http_timeout_seconds,
        },
        "logging": {
            "level": settings.log_level,
        },
    }

    _deep_merge(yaml_config, env_overrides)
    return yaml_config


def _deep_merge(base: dict, overrides: dict) -> None:
    """Recursively merge overrides into base dict, mutating base in place."""
    for key, value in overrides.items():
        if key in base and isinstance(base[key], dict) and isinstance(value, dict):
            _deep_merge(base[key], value)
        else:
            base[key] = value


def upload_limits(config: dict) -> tuple[int, int]:
    """Return ``(max_file_bytes, max_image_dim)`` from the ``upload`` section.

    Missing keys fall back to 10 MB and 2048 px.  Shared by the API upload
    route and the CLI so both reject and downscale the same files.
    """
    upload = config.get("upload") or {}
    max_mb = int(upload.get("max_file_size_mb", DEFAULT_MAX_FILE_SIZE_MB))
    max_dim = int(upload.get("max_image_dim", DEFAULT_MAX_IMAGE_DIM))
    if max_mb <= 0 or max_dim <= 0:
        raise ValueError(
            f"upload limits must be positive, got max_file_size_mb={max_mb}, "
            f"max_image_dim={max_dim}"
        )
    return max_mb * 1024 * 1024, max_dim

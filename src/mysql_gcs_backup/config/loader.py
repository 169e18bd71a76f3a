"""Configuration loading: TOML file, environment variables, explicit overrides.

Precedence (lowest to highest):
    1. Model defaults
    2. TOML file (``[mysql]``, ``[storage]``, ``[backup]`` tables)
    3. Environment variables (``{prefix}DB_USER``, ``{prefix}BUCKET``, ...)
    4. Explicit overrides (CLI flags)
"""

import os
import tomllib
from pathlib import Path
from typing import Any

from pydantic import ValidationError

from mysql_gcs_backup.config.models import BackupConfig
from mysql_gcs_backup.errors import ConfigError

# Flat setting name -> (section, field).  Section ``None`` means top level.
_SETTINGS: dict[str, tuple[str | None, str]] = {
    "db_user": ("mysql", "user"),
    "db_pass": ("mysql", "password"),
    "db_host": ("mysql", "host"),
    "db_port": ("mysql", "port"),
    "bucket": ("storage", "bucket"),
    "db_limit": (None, "db_limit"),
    "table_limit": (None, "table_limit"),
    "skip_dbs": (None, "skip_dbs"),
    "host_id": (None, "host_id"),
    "mysqldump": (None, "mysqldump"),
}


def _read_toml(config_path: Path) -> dict[str, Any]:
    if not config_path.exists():
        raise ConfigError(f"Backup config not found: {config_path}")

    try:
        with open(config_path, "rb") as f:
            data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Invalid TOML in {config_path}: {e}") from e

    raw: dict[str, Any] = {
        "mysql": dict(data.get("mysql", {})),
        "storage": dict(data.get("storage", {})),
    }
    raw.update(data.get("backup", {}))
    return raw


def _env_settings(env_prefix: str) -> dict[str, str]:
    """Collect ``{env_prefix}DB_USER``-style variables that are set."""
    found: dict[str, str] = {}
    for setting in _SETTINGS:
        value = os.environ.get(f"{env_prefix}{setting.upper()}")
        if value:
            found[setting] = value
    return found


def _apply(raw: dict[str, Any], settings: dict[str, Any]) -> None:
    for setting, value in settings.items():
        if value is None:
            continue
        if setting not in _SETTINGS:
            raise ConfigError(f"Unknown setting: {setting}")
        section, field = _SETTINGS[setting]
        if section is None:
            raw[field] = value
        else:
            raw[section][field] = value


def load_backup_config(
    config_path: Path | str | None = None,
    env_prefix: str = "",
    overrides: dict[str, Any] | None = None,
    require_storage: bool = True,
) -> BackupConfig:
    """Load and validate backup configuration.

    Args:
        config_path: Optional path to a TOML file.
        env_prefix: Prefix for environment variable lookup
            (e.g. ``"BACKUP_"`` reads ``BACKUP_DB_USER``).
        overrides: Flat settings (``db_user``, ``bucket``, ``db_limit``, ...)
            applied last.  ``None`` values are ignored.
        require_storage: When ``False``, a configuration without any
            ``[storage]`` settings is valid and ``storage`` is ``None``
            (listing-only use such as a dry run).

    Returns:
        Validated ``BackupConfig``.

    Raises:
        ConfigError: If the file is missing or unreadable, a setting is
            unknown, or validation fails (e.g. no user, password or bucket).

    Example:
        config = load_backup_config(
            "backup.toml",
            env_prefix="BACKUP_",
            overrides={"db_limit": 4},
        )
    """
    if config_path is not None:
        raw = _read_toml(Path(config_path))
    else:
        raw = {"mysql": {}, "storage": {}}

    _apply(raw, _env_settings(env_prefix))
    _apply(raw, overrides or {})

    if not require_storage and not raw["storage"]:
        del raw["storage"]

    try:
        return BackupConfig(**raw)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in e.errors()
        )
        raise ConfigError(f"Invalid backup configuration: {problems}") from e

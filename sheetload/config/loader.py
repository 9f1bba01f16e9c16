from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any

import jsonschema
import yaml
from jsonschema.exceptions import ValidationError

from ..errors import SheetloadError
from ..models.config_models import (
    AuthConfig,
    ColumnMapping,
    DatabaseConfig,
    TableConfig,
    TableDefaults,
)

"""Per-database configuration loader.

Responsibilities:
- Locate the configuration document inside a database folder
  (config.json, config.yml or config.yaml)
- Validate it against the bundled config_schema.json
- Build the immutable DatabaseConfig / TableConfig / ColumnMapping structures

Column-level problems (blank Db / Type / Excel) are deliberately NOT rejected
here: they are table-scoped failures reported by the schema builder so that one
bad table does not take down its siblings.
"""

__all__ = [
    "CONFIG_FILENAMES",
    "ConfigError",
    "ConfigMissing",
    "find_config_file",
    "load_config",
    "load_database_config",
    "resolve_root",
]

SCHEMA_PATH = Path(__file__).parent / "config_schema.json"
CONFIG_FILENAMES = ("config.json", "config.yml", "config.yaml")


class ConfigError(SheetloadError):
    pass


class ConfigMissing(ConfigError):
    """No configuration document in the database folder."""


def _validate_config_schema(data: Any) -> None:
    """Validate config data against the JSON schema.

    Raises:
        ConfigError: if the schema file is missing / invalid or the document
            fails validation.
    """
    if not SCHEMA_PATH.exists():
        raise ConfigError(f"config schema not found: {SCHEMA_PATH}")
    try:
        schema = json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))
        jsonschema.validate(data, schema)
    except json.JSONDecodeError as e:
        raise ConfigError(f"invalid schema file: {e}") from e
    except ValidationError as e:
        raise ConfigError(f"config validation failed: {e.message}") from e


def _str_list(value: Any) -> tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


def _opt_str(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _defaults_from(raw: dict[str, Any]) -> TableDefaults:
    patterns = raw.get("FilePattern")
    return TableDefaults(
        file_pattern=_str_list(patterns) or None,
        mode=_opt_str(raw.get("Mode")),
        recurse=raw.get("Recurse"),
        skip_processed=raw.get("SkipProcessed"),
        skip_mode=_opt_str(raw.get("SkipMode")),
        truncate_before_import=raw.get("TruncateBeforeImport"),
        date_format=_opt_str(raw.get("DateFormat")),
        identity_insert=raw.get("IdentityInsert"),
        batch_size=raw.get("BatchSize"),
        stop_field=_opt_str(raw.get("StopField")),
    )


def _column_from(raw: dict[str, Any]) -> ColumnMapping:
    # blanks are kept as "" and rejected later, per table
    return ColumnMapping(
        db=str(raw.get("Db") or "").strip(),
        type=str(raw.get("Type") or "").strip(),
        excel=str(raw.get("Excel") or "").strip(),
    )


def _table_from(raw: dict[str, Any]) -> TableConfig:
    name = str(raw["Name"]).strip()
    return TableConfig(
        name=name,
        folder=_opt_str(raw.get("Folder")) or name,
        columns=tuple(_column_from(c or {}) for c in raw.get("Columns") or []),
        sheet_name=_opt_str(raw.get("SheetName")),
        key_columns=tuple(k.strip() for k in _str_list(raw.get("KeyColumns")) if k.strip()),
        pre_sql=tuple(s for s in _str_list(raw.get("PreSql")) if s.strip()),
        post_sql=tuple(s for s in _str_list(raw.get("PostSql")) if s.strip()),
        overrides=_defaults_from(raw),
    )


def find_config_file(folder: Path) -> Path | None:
    for name in CONFIG_FILENAMES:
        candidate = folder / name
        if candidate.is_file():
            return candidate
    return None


def load_config(path: Path, folder: Path | None = None) -> DatabaseConfig:
    """Load and validate one configuration document.

    Args:
        path: the document path.
        folder: database folder used to resolve relative paths
            (defaults to the document's directory).
    """
    if not path.exists():
        raise ConfigMissing(f"config file not found: {path}")
    text = path.read_text(encoding="utf-8-sig")
    try:
        if path.suffix.lower() == ".json":
            data = json.loads(text) if text.strip() else {}
        else:
            data = yaml.safe_load(text) or {}
    except (json.JSONDecodeError, yaml.YAMLError) as e:
        raise ConfigError(f"invalid config document {path.name}: {e}") from e

    _validate_config_schema(data)

    auth_raw = data.get("Auth") or {}
    defaults_raw = data.get("Defaults") or {}
    auth = AuthConfig(
        integrated_security=bool(auth_raw.get("IntegratedSecurity") or False),
        user=_opt_str(auth_raw.get("User")),
        password=auth_raw.get("Password") or None,
    )
    return DatabaseConfig(
        server=_opt_str(data.get("Server")),
        port=data.get("Port"),
        database=str(data["Database"]).strip(),
        auth=auth,
        defaults=_defaults_from(defaults_raw),
        tables=tuple(_table_from(t) for t in data.get("Tables") or []),
        folder=(folder or path.parent).resolve(),
        processed_log_path=_opt_str(defaults_raw.get("ProcessedLogPath")),
    )


def load_database_config(folder: Path) -> DatabaseConfig:
    """Load the configuration document of a database folder.

    Raises:
        ConfigMissing: when the folder has no configuration document.
        ConfigError: when the document is unreadable or invalid.
    """
    path = find_config_file(folder)
    if path is None:
        raise ConfigMissing(
            f"no configuration document ({', '.join(CONFIG_FILENAMES)}) in {folder}"
        )
    return load_config(path, folder=folder)


def resolve_root(root: Path | None = None) -> Path:
    """Root directory holding the ``databases/`` subdirectory."""
    if root is not None:
        return root
    env_root = os.getenv("SHEETLOAD_ROOT")
    return Path(env_root) if env_root else Path.cwd()

"""Configuration management for Versa.

Storage Structure
-----------------
~/.versa/                     # User-level (override with VERSA_HOME)
├── config.yaml               # Engine defaults for every project
├── state/                    # State for editing outside any project
└── logs/versa.log            # Rotating log (CLI only)

<project>/.versa/             # Project-level
├── config.yaml               # Overrides for this project
└── state/
    ├── checkpoints.db        # Primary store (SQLite documents)
    └── checkpoints.json      # Fallback / backup copy

Cascade: project config.yaml → user config.yaml → built-in defaults.
"""

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any

import yaml

from versa.atomic import atomic_write_text
from versa.errors import Err, Ok, Result, VersaError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.yaml"
PROJECT_DIR_NAME = ".versa"

MIN_CHECKPOINTS = 1
MAX_CHECKPOINTS = 200


def get_versa_home() -> Path:
    """User-level Versa directory, honouring VERSA_HOME."""
    if env_home := os.environ.get("VERSA_HOME"):
        return Path(env_home).expanduser()
    return Path.home() / ".versa"


@dataclass
class VersaConfig:
    """Tunable engine settings."""

    max_checkpoints: int = 50
    auto_save: bool = True
    storage_key: str = "checkpoints"

    # Persistence
    use_sqlite: bool = True
    keep_json_backup: bool = True

    log_level: str = "WARNING"
    default_language: str = "plaintext"

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "VersaConfig":
        """Build a config from a mapping, ignoring unknown keys."""
        # Only known dataclass fields, never setattr arbitrary keys
        valid_fields = {f.name for f in fields(cls)}
        known = {k: v for k, v in data.items() if k in valid_fields}
        unknown = sorted(set(data) - valid_fields - {"_version"})
        if unknown:
            logger.debug(f"Ignoring unknown config keys: {', '.join(unknown)}")
        return cls(**known)

    @classmethod
    def load(cls, versa_dir: Path) -> "VersaConfig":
        """Load config from a .versa directory, or defaults if absent.

        Fields that fail validation are reset to their defaults.
        """
        config_path = versa_dir / CONFIG_FILENAME
        if not config_path.exists():
            return cls()

        try:
            with open(config_path) as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            logger.warning(f"Unreadable config {config_path}, using defaults: {e}")
            return cls()

        if not isinstance(data, dict):
            logger.warning(f"Config {config_path} is not a mapping, using defaults")
            return cls()

        try:
            config = cls.from_dict(data)
        except TypeError as e:
            logger.warning(f"Invalid config {config_path}, using defaults: {e}")
            return cls()

        return config.sanitized()

    def save(self, versa_dir: Path) -> Result[Path, VersaError]:
        """Write non-default values to <versa_dir>/config.yaml."""
        defaults = VersaConfig()
        data = {
            f.name: getattr(self, f.name)
            for f in fields(self)
            if getattr(self, f.name) != getattr(defaults, f.name)
        }
        if not data:
            data = {"_version": 1}

        content = yaml.safe_dump(data, default_flow_style=False, sort_keys=False)
        return atomic_write_text(versa_dir / CONFIG_FILENAME, content, mode=0o600)

    def validate(self) -> list[str]:
        """Return a list of problems, empty when the config is usable."""
        errors = []
        if (
            isinstance(self.max_checkpoints, bool)
            or not isinstance(self.max_checkpoints, int)
            or not MIN_CHECKPOINTS <= self.max_checkpoints <= MAX_CHECKPOINTS
        ):
            errors.append(
                f"max_checkpoints must be an integer in "
                f"{MIN_CHECKPOINTS}-{MAX_CHECKPOINTS}, got {self.max_checkpoints!r}"
            )
        for name in ("auto_save", "use_sqlite", "keep_json_backup"):
            if not isinstance(getattr(self, name), bool):
                errors.append(f"{name} must be true or false")
        if not isinstance(self.storage_key, str) or not self.storage_key:
            errors.append("storage_key must be a non-empty string")
        if not isinstance(self.default_language, str) or not self.default_language:
            errors.append("default_language must be a non-empty string")
        if not isinstance(self.log_level, str) or not isinstance(
            logging.getLevelName(self.log_level.upper()), int
        ):
            errors.append(f"log_level must be a logging level name, got {self.log_level!r}")
        return errors

    def sanitized(self) -> "VersaConfig":
        """Copy of this config with every invalid field reset to its default."""
        defaults = VersaConfig()
        values = {}
        for f in fields(self):
            probe = VersaConfig(**{f.name: getattr(self, f.name)})
            if probe.validate():
                logger.warning(
                    f"Invalid config value {f.name}={getattr(self, f.name)!r}, "
                    f"using default {getattr(defaults, f.name)!r}"
                )
                values[f.name] = getattr(defaults, f.name)
            else:
                values[f.name] = getattr(self, f.name)
        return VersaConfig(**values)

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


def parse_config_value(key: str, raw: str) -> Result[Any, VersaError]:
    """Convert a CLI string into the type of the named config field."""
    field_types = {f.name: f.type for f in fields(VersaConfig)}
    if key not in field_types:
        return Err(
            VersaError(
                code="CONFIG_UNKNOWN_KEY",
                message=f"Unknown config key: {key}",
                context={"key": key, "known": sorted(field_types)},
            )
        )

    # Field annotations are strings under postponed evaluation
    type_name = field_types[key] if isinstance(field_types[key], str) else field_types[key].__name__
    if type_name == "bool":
        lowered = raw.strip().lower()
        if lowered in ("true", "yes", "on", "1"):
            return Ok(True)
        if lowered in ("false", "no", "off", "0"):
            return Ok(False)
    elif type_name == "int":
        try:
            return Ok(int(raw))
        except ValueError:
            pass
    else:
        return Ok(raw)

    return Err(
        VersaError(
            code="CONFIG_INVALID_VALUE",
            message=f"Invalid value for {key}: {raw!r}",
            context={"key": key, "value": raw},
        )
    )


def detect_project_root(start_path: Path | None = None) -> Path | None:
    """Walk up from start_path looking for a .versa or .git directory.

    Stops at the user's home directory. Returns None outside any project.
    """
    if start_path is None:
        start_path = Path.cwd()

    current = start_path.resolve()
    home = Path.home()

    while True:
        if (current / PROJECT_DIR_NAME).is_dir():
            return current
        if (current / ".git").exists():
            return current
        if current == home or current == current.parent:
            return None
        current = current.parent


def get_versa_dir(project_path: Path | None = None) -> Path:
    """The .versa directory that owns state for project_path (or the user)."""
    root = project_path if project_path is not None else detect_project_root()
    if root is not None:
        return root / PROJECT_DIR_NAME
    return get_versa_home()


def get_state_dir(project_path: Path | None = None) -> Path:
    return get_versa_dir(project_path) / "state"


def get_versa_config(project_path: Path | None = None) -> VersaConfig:
    """Load VersaConfig with project → user → default cascade.

    Priority (highest to lowest):
    1. Project-level config (<project>/.versa/config.yaml)
    2. User-level config (~/.versa/config.yaml)
    3. Built-in defaults
    """
    root = project_path if project_path is not None else detect_project_root()
    if root is not None:
        project_versa = root / PROJECT_DIR_NAME
        if (project_versa / CONFIG_FILENAME).exists():
            return VersaConfig.load(project_versa)

    return VersaConfig.load(get_versa_home())

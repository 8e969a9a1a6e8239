"""
Configuration for ainotes.

Settings come from three layers, later layers winning:

    1. built-in defaults
    2. the persisted JSON config file (default ~/.ainotes/config.json)
    3. environment variables, loaded from a .env file via python-dotenv

Environment variables
---------------------
    AINOTES_CONFIG_PATH           location of the persisted config file
    AINOTES_BACKEND               "local" or "remote"
    AINOTES_DB_PATH               SQLite file used by the local backend
    AINOTES_TABLE                 Supabase table used by the remote backend
    SUPABASE_URL                  Supabase project URL
    SUPABASE_KEY                  Supabase API key
    AINOTES_AI_PROVIDER           AI provider name
    AINOTES_EMBEDDING_DIMENSIONS  native embedding width of the AI provider
"""

import json
import logging
import os
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any, Dict, Optional

from dotenv import load_dotenv

from ainotes.embedding import EMBEDDING_DIMENSIONS
from ainotes.errors import ConfigurationError

logger = logging.getLogger(__name__)

# Load environment variables from the .env file into the process environment.
load_dotenv()

BACKEND_KINDS = ("local", "remote")

DEFAULT_CONFIG_PATH = Path.home() / ".ainotes" / "config.json"
DEFAULT_LOCAL_PATH = str(Path.home() / ".ainotes" / "notes.db")


@dataclass(frozen=True)
class StorageConfig:
    """
    Which backend to use and how to reach it.

    Two configs compare equal when they would build the same backend; the
    BackendSelector relies on this to decide whether a change requires
    reselection.
    """

    backend: str = "local"
    local_path: str = DEFAULT_LOCAL_PATH
    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = field(default=None, repr=False)
    table: str = "notes"

    def validate(self) -> "StorageConfig":
        """
        Raise ConfigurationError unless this config can build a backend.

        Returns self so calls can be chained.
        """
        if self.backend not in BACKEND_KINDS:
            raise ConfigurationError(
                f"Unknown storage backend {self.backend!r}; expected one of {', '.join(BACKEND_KINDS)}"
            )

        if self.backend == "local" and not self.local_path:
            raise ConfigurationError("The local backend requires a database path")

        if self.backend == "remote" and not (self.supabase_url and self.supabase_key):
            raise ConfigurationError(
                "Supabase credentials not found. Set SUPABASE_URL and SUPABASE_KEY "
                "in your environment or .env file, or in the config file."
            )

        return self

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "StorageConfig":
        known = {name for name in cls.__dataclass_fields__}
        unknown = set(data) - known
        if unknown:
            logger.warning("Ignoring unknown config keys: %s", ", ".join(sorted(unknown)))
        return cls(**{k: v for k, v in data.items() if k in known})

    @classmethod
    def from_env(cls, base: Optional["StorageConfig"] = None) -> "StorageConfig":
        """Overlay the environment variables onto `base` (defaults when None)."""
        config = base or cls()
        overrides: Dict[str, Any] = {}

        env_map = {
            "AINOTES_BACKEND": "backend",
            "AINOTES_DB_PATH": "local_path",
            "AINOTES_TABLE": "table",
            "SUPABASE_URL": "supabase_url",
            "SUPABASE_KEY": "supabase_key",
        }
        for env_name, attr in env_map.items():
            value = os.getenv(env_name)
            if value:
                overrides[attr] = value

        return replace(config, **overrides) if overrides else config

    def describe(self) -> Dict[str, Any]:
        """Printable form with the API key masked."""
        data = self.to_dict()
        if data.get("supabase_key"):
            data["supabase_key"] = "***"
        return data


@dataclass(frozen=True)
class AIConfig:
    """Selects the AI provider used for embeddings, tags and answers."""

    provider: str = "deterministic"
    embedding_dimensions: int = EMBEDDING_DIMENSIONS

    @classmethod
    def from_env(cls) -> "AIConfig":
        dimensions = os.getenv("AINOTES_EMBEDDING_DIMENSIONS")
        try:
            width = int(dimensions) if dimensions else EMBEDDING_DIMENSIONS
        except ValueError as exc:
            raise ConfigurationError(
                f"AINOTES_EMBEDDING_DIMENSIONS must be an integer, got {dimensions!r}"
            ) from exc

        return cls(
            provider=os.getenv("AINOTES_AI_PROVIDER") or "deterministic",
            embedding_dimensions=width,
        )


# ---------------------------------------------------------------------------
# Persisted configuration file
# ---------------------------------------------------------------------------


def config_path() -> Path:
    override = os.getenv("AINOTES_CONFIG_PATH")
    return Path(override).expanduser() if override else DEFAULT_CONFIG_PATH


def load_config(path: Optional[Path] = None) -> StorageConfig:
    """
    Read the persisted config file and overlay the environment.

    A missing file is not an error; defaults are used instead.

    Raises
    ------
    ConfigurationError
        If the file exists but does not contain a JSON object.
    """
    path = path or config_path()
    config = StorageConfig()

    if path.exists():
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Invalid JSON in config file: {path}") from exc

        if not isinstance(data, dict):
            raise ConfigurationError(f"Config file must contain a JSON object: {path}")
        config = StorageConfig.from_dict(data)

    return StorageConfig.from_env(config)


def save_config(config: StorageConfig, path: Optional[Path] = None) -> Path:
    """Validate and persist `config`. Returns the file written."""
    config.validate()
    path = path or config_path()
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(config.to_dict(), indent=2), encoding="utf-8")
    logger.info("Saved %s backend configuration to %s", config.backend, path)
    return path

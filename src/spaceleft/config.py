"""User configuration for spaceleft."""

import json
import logging
import os
from pathlib import Path

from pydantic import BaseModel, Field, ValidationError

from spaceleft.models import SortMode
from spaceleft.walker import WalkStrategy

logger = logging.getLogger(__name__)


def config_dir() -> Path:
    """Directory holding config.json; ``SPACELEFT_HOME`` overrides ~/.spaceleft."""
    override = os.environ.get("SPACELEFT_HOME")
    if override:
        return Path(os.path.expanduser(override))
    return Path.home() / ".spaceleft"


def config_file() -> Path:
    return config_dir() / "config.json"


class Config(BaseModel):
    """Settings read from config.json."""

    snapshot_dir: Path = Field(
        default_factory=lambda: config_dir() / "scans",
        description="Where snapshot files are stored",
    )
    default_sort: SortMode = Field(SortMode.SIZE, description="Sort order for 'show'")
    top_n: int = Field(20, ge=1, description="Rows shown per table")
    strategy: WalkStrategy = Field(WalkStrategy.TWO_PASS, description="Walk strategy")


def load_config() -> Config:
    """Load configuration from disk, falling back to defaults."""
    path = config_file()
    if not path.exists():
        return Config()

    try:
        with open(path, encoding="utf-8") as f:
            return Config.model_validate(json.load(f))
    except (json.JSONDecodeError, ValidationError, OSError) as e:
        logger.warning("Ignoring unreadable config %s: %s", path, e)
        return Config()


def save_config(config: Config) -> bool:
    """Save configuration to disk."""
    path = config_file()
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as f:
            f.write(config.model_dump_json(indent=2))
        return True
    except OSError:
        logger.warning("Could not write config %s", path)
        return False

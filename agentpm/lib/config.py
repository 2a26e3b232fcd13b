"""
Configuration for agentpm.

The config file (default ./.agentpm.json) names the current epic document:

    {"current_epic": "epics/epic-8.xml", "default_assignee": "agent"}

Relative epic paths are resolved against the config file's directory.
"""

import json
import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from agentpm.errors import ConfigError
from agentpm.lib import validate
from agentpm.lib.constants import DEFAULT_ASSIGNEE
from agentpm.lib.files import atomic_write_text

logger = logging.getLogger(__name__)


@dataclass
class Config:
    """Contents of .agentpm.json"""
    current_epic: str
    default_assignee: str = DEFAULT_ASSIGNEE
    previous_epic: str = ""
    project_name: str = ""
    allow_fail_after_pass: bool = True
    hints: dict = field(default_factory=dict)
    path: Optional[Path] = field(default=None, compare=False)

    def epic_path(self) -> Path:
        """Absolute-or-cwd-relative path of the current epic."""
        return self.resolve(self.current_epic)

    def previous_epic_path(self) -> Optional[Path]:
        return self.resolve(self.previous_epic) if self.previous_epic else None

    def resolve(self, epic: str) -> Path:
        """Resolve an epic path as stored in the config file."""
        epic = Path(epic)
        if epic.is_absolute() or self.path is None:
            return epic
        return self.path.parent / epic

    def relative(self, epic_path: Path) -> str:
        """Inverse of resolve(): epic_path relative to the config file's directory."""
        base = self.path.resolve().parent if self.path else Path.cwd()
        return os.path.relpath(Path(epic_path).resolve(), base)

    def to_dict(self) -> dict:
        data = {
            "current_epic": self.current_epic,
            "default_assignee": self.default_assignee,
        }
        if self.previous_epic:
            data["previous_epic"] = self.previous_epic
        if self.project_name:
            data["project_name"] = self.project_name
        if not self.allow_fail_after_pass:
            data["allow_fail_after_pass"] = False
        if self.hints:
            data["hints"] = dict(self.hints)
        return data


def load_config(path: Path) -> Config:
    """Load and validate the config file.

    Raises:
        ConfigError: Missing file, invalid JSON, or schema violation
    """
    path = Path(path)
    if not path.exists():
        raise ConfigError(f"Config file not found: {path} (run 'agentpm init --epic <path>' or pass --file)")
    try:
        data = validate.load_json(path, "config")
    except validate.SchemaError as e:
        raise ConfigError(f"Invalid config {path}: {e}") from None

    config = Config(
        current_epic=data["current_epic"],
        default_assignee=data.get("default_assignee") or DEFAULT_ASSIGNEE,
        previous_epic=data.get("previous_epic", ""),
        project_name=data.get("project_name", ""),
        allow_fail_after_pass=data.get("allow_fail_after_pass", True),
        hints=data.get("hints", {}),
        path=path,
    )
    logger.debug(f"Loaded config {path}: current_epic={config.current_epic}")
    return config


def save_config(config: Config, path: Path) -> None:
    """Validate and write the config file atomically.

    Raises:
        ConfigError: Data does not match the schema or the write failed
    """
    path = Path(path)
    data = config.to_dict()
    try:
        validate.check(data, "config")
    except validate.SchemaError as e:
        raise ConfigError(f"Refusing to write invalid config to {path}: {e}") from None
    try:
        atomic_write_text(path, json.dumps(data, indent=2) + "\n")
    except OSError as e:
        raise ConfigError(f"Cannot write config {path}: {e}") from None
    config.path = path

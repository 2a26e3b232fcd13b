"""
Per-invocation state shared by all commands: resolved config, epic path,
clock, output format and transition opt-ins.
"""

from dataclasses import dataclass
from datetime import datetime
from pathlib import Path
from typing import Optional

from agentpm.errors import ConfigError
from agentpm.hints.generator import HintConfig
from agentpm.lib import output
from agentpm.lib.config import Config, load_config
from agentpm.lib.constants import DEFAULT_ASSIGNEE, DEFAULT_CONFIG_PATH
from agentpm.lib.timeutil import resolve_clock
from agentpm.model.document import Epic
from agentpm.model.storage import load_epic, save_epic
from agentpm.workflow.prerequisites import TransitionOptions


@dataclass
class Session:
    config_path: Path
    fmt: str
    timestamp: datetime
    config: Optional[Config] = None
    file_override: Optional[Path] = None
    epic: Optional[Epic] = None  # last loaded document, used for error hints

    @classmethod
    def from_args(cls, args, needs_config: bool = True) -> "Session":
        """Build a session from parsed global flags.

        The config file is required unless --file names the epic directly.
        """
        config_path = Path(getattr(args, "config", None) or DEFAULT_CONFIG_PATH)
        file_override = Path(args.file) if getattr(args, "file", None) else None
        session = cls(
            config_path=config_path,
            fmt=getattr(args, "format", None) or "text",
            timestamp=resolve_clock(getattr(args, "time", None)),
            file_override=file_override,
        )

        if not needs_config:
            return session
        if file_override is not None:
            if config_path.exists():
                session.config = load_config(config_path)
            return session
        session.config = load_config(config_path)
        return session

    @property
    def epic_path(self) -> Path:
        if self.file_override is not None:
            return self.file_override
        if self.config is None:
            raise ConfigError(f"No epic file: pass --file or create {self.config_path} with 'agentpm init'")
        return self.config.epic_path()

    @property
    def default_assignee(self) -> str:
        return self.config.default_assignee if self.config else DEFAULT_ASSIGNEE

    @property
    def hint_config(self) -> HintConfig:
        return HintConfig.from_dict(self.config.hints if self.config else None)

    def options(self, **overrides) -> TransitionOptions:
        options = TransitionOptions(
            allow_fail_after_pass=self.config.allow_fail_after_pass if self.config else True,
            assignee=self.default_assignee,
        )
        for name, value in overrides.items():
            setattr(options, name, value)
        return options

    def load(self, strict: bool = True) -> Epic:
        self.epic = load_epic(self.epic_path, strict=strict)
        return self.epic

    def save(self, epic: Epic) -> None:
        save_epic(epic, self.epic_path)
        self.epic = epic

    def emit(self, payload: dict, text_lines: Optional[list[str]] = None, root: str = "result") -> None:
        output.emit(payload, self.fmt, text_lines, root)

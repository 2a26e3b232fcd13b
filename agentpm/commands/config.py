"""
agentpm config / switch - show the configuration, change the current epic.
"""

import logging
from dataclasses import asdict
from pathlib import Path

from agentpm.errors import ConfigError, UsageError
from agentpm.lib.config import Config, load_config, save_config
from agentpm.lib.session import Session
from agentpm.model.storage import load_epic

logger = logging.getLogger(__name__)


def _session_config(session: Session) -> Config:
    if session.config is not None:
        return session.config
    return load_config(session.config_path)


def cmd_config(args, session: Session) -> int:
    """Show the resolved configuration."""
    config = _session_config(session)
    epic_path = config.epic_path()

    warnings = []
    if not epic_path.exists():
        warnings.append(f"Epic file not found: {epic_path}")

    payload = {
        "config_file": str(session.config_path),
        "current_epic": config.current_epic,
        "epic_path": str(epic_path),
        "previous_epic": config.previous_epic or None,
        "project_name": config.project_name or None,
        "default_assignee": config.default_assignee,
        "allow_fail_after_pass": config.allow_fail_after_pass,
        "hints": asdict(session.hint_config),
        "warnings": warnings,
    }

    lines = [
        "Current Configuration:",
        f"  Config file:      {session.config_path}",
        f"  Current epic:     {config.current_epic}",
    ]
    if config.previous_epic:
        lines.append(f"  Previous epic:    {config.previous_epic}")
    if config.project_name:
        lines.append(f"  Project name:     {config.project_name}")
    lines.append(f"  Default assignee: {config.default_assignee}")
    if not config.allow_fail_after_pass:
        lines.append("  Fail after pass:  disallowed")
    for warning in warnings:
        lines.append("")
        lines.append(f"WARNING: {warning}")

    session.emit(payload, lines, root="config")
    return 0


def cmd_switch(args, session: Session) -> int:
    """Point the config at another epic, remembering the current one."""
    config = _session_config(session)

    if args.back:
        if args.epic:
            raise UsageError("give either an epic file or --back, not both")
        if not config.previous_epic:
            raise ConfigError(f"No previous epic to switch back to in {session.config_path}")
        target_path = config.previous_epic_path()
        new_epic = config.previous_epic
    else:
        if not args.epic:
            raise UsageError("target epic file is required (use --back to switch to the previous epic)")
        target_path = Path(args.epic)
        new_epic = config.relative(target_path)

    # StorageError if the target is missing or not XML, DocumentError if it is broken
    epic = load_epic(target_path)

    old_epic = config.current_epic
    config.previous_epic = old_epic
    config.current_epic = new_epic
    save_config(config, session.config_path)
    logger.info(f"Switched {session.config_path} from {old_epic} to {new_epic}")

    verb = "Switched back" if args.back else "Switched"
    message = f"{verb} from {old_epic} to {new_epic}"
    payload = {
        "previous_epic": old_epic,
        "current_epic": new_epic,
        "epic_path": str(target_path),
        "epic_id": epic.id,
        "epic_name": epic.name,
        "message": message,
    }
    lines = [
        message,
        f"Current epic: {target_path} ({epic.id} - {epic.name})",
    ]
    session.emit(payload, lines, root="switch")
    return 0

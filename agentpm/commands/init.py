"""
agentpm init - point the config file at an epic document.
"""

import logging
import os
from pathlib import Path

from agentpm.lib.config import Config, save_config
from agentpm.lib.session import Session
from agentpm.model.storage import load_epic

logger = logging.getLogger(__name__)


def cmd_init(args, session: Session) -> int:
    """Write .agentpm.json naming the current epic."""
    epic_path = Path(args.epic)
    # Fails with StorageError if the file is missing or not an epic
    epic = load_epic(epic_path, strict=False)

    # Relative to the config file's directory
    current_epic = os.path.relpath(epic_path.resolve(), session.config_path.resolve().parent)
    config = Config(
        current_epic=current_epic,
        default_assignee=args.assignee,
        project_name=args.project_name or "",
    )
    save_config(config, session.config_path)
    logger.info(f"Wrote {session.config_path} (current_epic={current_epic})")

    payload = {
        "config": str(session.config_path),
        "current_epic": current_epic,
        "epic_id": epic.id,
        "epic_name": epic.name,
        "default_assignee": config.default_assignee,
    }
    lines = [
        f"Initialized {session.config_path}",
        f"Current epic:   {epic_path} ({epic.id} - {epic.name})",
        f"Assignee:       {config.default_assignee}",
    ]
    session.emit(payload, lines, root="init")
    return 0

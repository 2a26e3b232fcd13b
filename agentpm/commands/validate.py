"""
agentpm validate - structural and lifecycle checks on the epic document.
"""

from agentpm.lib.session import Session
from agentpm.model.integrity import check_epic


def cmd_validate(args, session: Session) -> int:
    """Report every problem found; exit 1 if any error exists."""
    epic = session.load(strict=False)
    report = check_epic(epic)

    lines = [f"Validating {session.epic_path}", "=" * 60, ""]
    lines.append(f"Checks run:     {len(report.checks)}")
    lines.append(f"Errors:         {len(report.errors)}")
    lines.append(f"Warnings:       {len(report.warnings)}")
    for finding in report.errors:
        lines.append(f"  ERROR   {finding.message}")
    for finding in report.warnings:
        lines.append(f"  WARNING {finding.message}")
    lines.append("")
    lines.append("Epic is valid." if report.valid else "Epic has errors.")

    session.emit(report.to_dict(), lines, root="validation")
    return 0 if report.valid else 1

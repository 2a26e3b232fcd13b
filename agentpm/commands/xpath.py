"""
agentpm query - select elements of the epic document with a path expression.
"""

from agentpm.lib.session import Session
from agentpm.model import pathquery


def cmd_query(args, session: Session) -> int:
    """Print the elements matching args.expression."""
    epic = session.load()
    matches = pathquery.select(epic, args.expression)

    if session.fmt == "xml":
        print(pathquery.matches_to_xml(args.expression, matches, str(session.epic_path)))
        return 0

    payload = {
        "query": args.expression,
        "epic_file": str(session.epic_path),
        "match_count": len(matches),
        "matches": [pathquery.describe_match(el) for el in matches],
    }
    if matches:
        lines = [pathquery.format_match(el) for el in matches]
    else:
        lines = [f"No elements match {args.expression}"]
    session.emit(payload, lines, root="query_result")
    return 0

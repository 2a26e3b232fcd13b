"""
Path queries over the epic document (`agentpm query`).

Expressions use the ElementTree path subset of XPath and run against the
document exactly as it is saved:

    //task                          every task
    //task[@status='done']          done tasks
    //task[@phase_id='1A']          tasks of phase 1A
    //test[@test_result='failing']  failing tests
    /epic/current_state/next_action the stored next action
    tasks/task[2]                   relative to <epic>; second task

Absolute paths start at the <epic> element itself, so "/epic" and "//epic"
select it.
"""

import xml.etree.ElementTree as ET
from typing import Optional

from agentpm.errors import QueryError
from agentpm.model.document import Epic
from agentpm.model.storage import to_element

EXAMPLE = "//task[@status='done']"


def select(epic: Epic, expression: str) -> list[ET.Element]:
    """
    Evaluate expression against the epic's XML form.

    Raises:
        QueryError: Empty or unparseable expression
    """
    expr = expression.strip()
    if not expr:
        raise QueryError(expression, "expression is empty", f"Try {EXAMPLE}")

    if expr.count("[") != expr.count("]"):
        raise QueryError(expression, "unbalanced brackets", _suggestion(expr))

    root = to_element(epic)
    if expr == "/":
        return [root]

    if expr.startswith("/"):
        # Wrap so the root element is reachable from absolute paths
        document = ET.Element("document")
        document.append(root)
        context, path = document, "." + expr
    else:
        context, path = root, expr

    try:
        return context.findall(path)
    except (SyntaxError, KeyError, TypeError) as e:
        raise QueryError(expression, _reason(e), _suggestion(expr)) from None


def _reason(error: Exception) -> str:
    if isinstance(error, KeyError):
        return f"unsupported token {error}"
    if isinstance(error, TypeError):
        return "invalid path"
    return str(error)


def _suggestion(expr: str) -> str:
    if expr.count("[") != expr.count("]"):
        return "Check for missing or unmatched brackets in predicates"
    if expr.count("'") % 2 or expr.count('"') % 2:
        return "Check for missing or unmatched quotes in attribute values"
    if "(" in expr:
        return f"Functions are not supported; use attribute predicates such as {EXAMPLE}"
    return "Supported forms: //element, //element[@attr='value'], //element[tag='text'], //element[N]"


def describe_match(el: ET.Element) -> dict:
    """Tag, attributes, text and leaf child values of a matched element."""
    data = {"tag": el.tag, "attributes": dict(el.attrib)}
    text = (el.text or "").strip()
    if text:
        data["text"] = text
    fields = {child.tag: (child.text or "").strip() for child in el if len(child) == 0}
    if fields:
        data["fields"] = fields
    return data


def format_match(el: ET.Element) -> str:
    """One text line per match: tag, attributes, then text if any."""
    attrs = " ".join(f'{k}="{v}"' for k, v in el.attrib.items())
    line = f"{el.tag} {attrs}" if attrs else el.tag
    text = (el.text or "").strip()
    return f"{line}: {text}" if text else line


def matches_to_xml(expression: str, matches: list[ET.Element], epic_file: Optional[str] = None) -> str:
    """<query_result> wrapping the matched elements."""
    result = ET.Element("query_result", {"query": expression, "match_count": str(len(matches))})
    if epic_file:
        result.set("epic_file", epic_file)
    for el in matches:
        result.append(el)
    ET.indent(result, space="  ")
    return ET.tostring(result, encoding="unicode")

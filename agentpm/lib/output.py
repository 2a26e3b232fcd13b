"""
Result rendering in text, JSON or XML.

Commands build one payload dict and, for text output, a list of lines. The
JSON and XML views are derived mechanically from the payload so all three
formats carry the same data.
"""

import json
import sys
import xml.etree.ElementTree as ET
from typing import Optional

from agentpm.errors import AgentPMError


def to_json(payload: dict) -> str:
    return json.dumps(payload, indent=2)


def to_xml(payload: dict, root: str = "result") -> str:
    el = ET.Element(root)
    _fill(el, payload)
    ET.indent(el, space="  ")
    return ET.tostring(el, encoding="unicode")


def _item_tag(key: str) -> str:
    """Element name for members of a list-valued key: phases -> phase."""
    if key.endswith("ies"):
        return key[:-3] + "y"
    if key.endswith("s") and len(key) > 1:
        return key[:-1]
    return "item"


def _scalar(value) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _fill(el: ET.Element, value, key: str = "") -> None:
    if isinstance(value, dict):
        for k, v in value.items():
            if v is None:
                continue
            _fill(ET.SubElement(el, k), v, k)
    elif isinstance(value, (list, tuple)):
        tag = _item_tag(key)
        for item in value:
            _fill(ET.SubElement(el, tag), item, tag)
    else:
        el.text = _scalar(value)


def render(payload: dict, fmt: str, text_lines: Optional[list[str]] = None, root: str = "result") -> str:
    """Render payload in the requested format."""
    if fmt == "json":
        return to_json(payload)
    if fmt == "xml":
        return to_xml(payload, root)
    if text_lines is None:
        return "\n".join(f"{k}: {_scalar(v)}" for k, v in payload.items() if not isinstance(v, (dict, list)))
    return "\n".join(text_lines)


def emit(payload: dict, fmt: str, text_lines: Optional[list[str]] = None, root: str = "result") -> None:
    print(render(payload, fmt, text_lines, root))


def render_error(error: AgentPMError, fmt: str, hint=None) -> str:
    """Render an error (and its hint) in the requested format."""
    payload = {"error": error.to_dict()}
    if hint is not None:
        payload["hint"] = hint.to_dict()
    if fmt == "json":
        return to_json(payload)
    if fmt == "xml":
        return to_xml(payload, "error_response")

    lines = [f"ERROR: {error}"]
    for failure in getattr(error, "failures", [])[1:]:
        lines.append(f"  also: {failure.message}")
    if hint is not None:
        lines.append(f"Hint: {hint.content}")
        if hint.command:
            lines.append(f"  Try: {hint.command}")
        if hint.reference:
            lines.append(f"  See: {hint.reference}")
    return "\n".join(lines)


def emit_error(error: AgentPMError, fmt: str, hint=None) -> None:
    """Text errors go to stderr; structured errors go to stdout for machine consumers."""
    stream = sys.stderr if fmt == "text" else sys.stdout
    print(render_error(error, fmt, hint), file=stream)

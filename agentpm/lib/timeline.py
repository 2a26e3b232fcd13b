"""
One-line rendering of epic events for `agentpm events`.

Similar to `git log --oneline`: timestamp, a symbol for the event type, and
the event text.
"""

from agentpm.model.document import Event

# ANSI color codes
COLORS = {
    "reset": "\033[0m",
    "dim": "\033[2m",
    "bold": "\033[1m",
    "green": "\033[32m",
    "red": "\033[31m",
    "yellow": "\033[33m",
    "blue": "\033[34m",
    "cyan": "\033[36m",
}

EVENT_COLORS = {
    "epic_started": "cyan",
    "epic_completed": "blue",
    "phase_started": "cyan",
    "phase_completed": "blue",
    "task_started": "cyan",
    "task_completed": "green",
    "task_cancelled": "dim",
    "test_passed": "green",
    "test_failed": "red",
    "test_cancelled": "dim",
    "blocker": "red",
    "issue": "yellow",
    "milestone": "blue",
}

EVENT_SYMBOLS = {
    "epic_started": "+",
    "epic_paused": "|",
    "epic_resumed": ">",
    "epic_completed": "M",
    "phase_started": "+",
    "phase_completed": "*",
    "task_started": ">",
    "task_completed": "*",
    "task_cancelled": "-",
    "test_started": ">",
    "test_passed": "*",
    "test_failed": "x",
    "test_cancelled": "-",
    "blocker": "!",
    "issue": "!",
    "milestone": "M",
    "decision": "D",
    "note": "n",
    "implementation": "i",
}


def format_event_oneline(event: Event, colorize: bool = False) -> str:
    """Format a single event as a one-line string."""
    ts_str = event.timestamp.strftime("%Y-%m-%d %H:%M") if event.timestamp else "????-??-?? ??:??"
    symbol = EVENT_SYMBOLS.get(event.type, "?")

    if colorize:
        color = COLORS.get(EVENT_COLORS.get(event.type, "reset"), "")
        reset = COLORS["reset"]
        dim = COLORS["dim"]
        return f"{dim}{ts_str}{reset} {color}[{symbol}]{reset} {event.data}"
    else:
        return f"{ts_str} [{symbol}] {event.data}"

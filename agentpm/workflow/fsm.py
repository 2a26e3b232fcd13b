"""Entity lifecycle state machines using the transitions library.

One table per entity kind. Each trigger is a verb the CLI exposes; a verb is
legal from a state only if a row exists for it. Cross-entity prerequisites
are not modelled here (see prerequisites.py).

Usage:
    from agentpm.workflow.fsm import LifecycleFSM

    fsm = LifecycleFSM("task", "pending")
    fsm.can("start")        # True
    fsm.target("start")     # "wip"
    fsm.trigger("start")
    fsm.state               # "wip"
"""

from transitions import Machine

LIFECYCLE_STATES = ["pending", "wip", "done", "cancelled"]
TEST_STATES = ["pending", "wip", "passing", "failing", "cancelled"]

STATES = {
    "epic": LIFECYCLE_STATES,
    "phase": LIFECYCLE_STATES,
    "task": LIFECYCLE_STATES,
    "test": TEST_STATES,
}

TRANSITIONS = {
    "epic": [
        {"trigger": "start", "source": "pending", "dest": "wip"},
        {"trigger": "pause", "source": "wip", "dest": "pending"},
        {"trigger": "resume", "source": "pending", "dest": "wip"},
        {"trigger": "complete", "source": "wip", "dest": "done"},
    ],
    "phase": [
        {"trigger": "start", "source": "pending", "dest": "wip"},
        {"trigger": "complete", "source": "wip", "dest": "done"},
    ],
    "task": [
        {"trigger": "start", "source": "pending", "dest": "wip"},
        {"trigger": "complete", "source": "wip", "dest": "done"},
        {"trigger": "cancel", "source": ["pending", "wip"], "dest": "cancelled"},
    ],
    "test": [
        {"trigger": "start", "source": "pending", "dest": "wip"},
        # Retest after a failure
        {"trigger": "start", "source": "failing", "dest": "wip"},
        {"trigger": "pass", "source": ["pending", "wip"], "dest": "passing"},
        {"trigger": "fail", "source": ["pending", "wip"], "dest": "failing"},
        {"trigger": "cancel", "source": ["pending", "wip"], "dest": "cancelled"},
    ],
}

# Regression: a passing test may be failed again unless the caller opts out
REGRESSION_TRANSITION = {"trigger": "fail", "source": "passing", "dest": "failing"}


def _build_target_lookup() -> dict[tuple[str, str], str]:
    """Build lookup from (kind, verb) -> destination state."""
    lookup: dict[tuple[str, str], str] = {}
    for kind, rows in TRANSITIONS.items():
        for row in rows:
            lookup.setdefault((kind, row["trigger"]), row["dest"])
    return lookup


# The state a verb leads to, used for idempotence checks
TARGET_FOR = _build_target_lookup()


def verbs_for(kind: str) -> list[str]:
    """All verbs defined for an entity kind, in table order."""
    verbs: list[str] = []
    for row in TRANSITIONS.get(kind, []):
        if row["trigger"] not in verbs:
            verbs.append(row["trigger"])
    return verbs


class LifecycleFSM:
    """State machine for one entity's status.

    Wraps the transitions library; the model is this object and its
    ``state`` attribute holds the status token.
    """

    def __init__(self, kind: str, state: str, allow_fail_after_pass: bool = True):
        if kind not in STATES:
            raise ValueError(f"Unknown entity kind: {kind}")
        self.kind = kind

        transitions = list(TRANSITIONS[kind])
        if kind == "test" and allow_fail_after_pass:
            transitions.append(REGRESSION_TRANSITION)

        self.machine = Machine(
            model=self,
            states=STATES[kind],
            transitions=transitions,
            initial=state,
            auto_transitions=False,  # Only explicit transitions
            send_event=True,
        )

    def can(self, verb: str) -> bool:
        """Check if a verb can be applied in the current state."""
        return verb in self.machine.get_triggers(self.state)

    def target(self, verb: str) -> str | None:
        """Destination state of a verb from the current state, or None."""
        rows = self.machine.get_transitions(trigger=verb, source=self.state)
        return rows[0].dest if rows else None

    def get_available_triggers(self) -> list[str]:
        """Get list of verbs available in current state."""
        return self.machine.get_triggers(self.state)

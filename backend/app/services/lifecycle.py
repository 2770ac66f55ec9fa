"""
PetMatch Backend - Adoption Status Transition Graph
===================================================

What:  The adoption application state machine as data: an adjacency set
       keyed by current status, plus the visit rules that feed into it.
How:   Pure functions over status strings. No database access, no side
       effects, so the whole graph is unit-testable on its own.
Who:   AdoptionService calls ensure_transition() before every status change.

Graph:
    submitted → under-review → approved → meet-scheduled → meet-completed
        → [home-visit-scheduled → home-visit-completed] → adoption-approved
        → adoption-completed → adoption-returned

    Every non-terminal status (the active ones and on-hold) may also move to
    rejected, withdrawn or on-hold. on-hold may return to the status it was
    held from; that edge is dynamic and comes from Adoption.held_from.
"""

from typing import Dict, FrozenSet, Optional, Tuple

from app.exceptions import InvalidTransitionError
from app.models.adoption import (
    ADOPTION_APPROVED,
    ADOPTION_COMPLETED,
    ADOPTION_RETURNED,
    ALL_STATUSES,
    APPROVED,
    HOME_VISIT_COMPLETED,
    HOME_VISIT_SCHEDULED,
    MEET_COMPLETED,
    MEET_SCHEDULED,
    ON_HOLD,
    OUTCOME_APPROVED,
    OUTCOME_NEEDS_FOLLOW_UP,
    OUTCOME_REJECTED,
    REJECTED,
    SUBMITTED,
    TERMINAL_STATUSES,
    UNDER_REVIEW,
    VISIT_FOLLOW_UP,
    VISIT_HOME,
    VISIT_MEET_AND_GREET,
    WITHDRAWN,
)

# ── Forward Chain ─────────────────────────────────────────────────────────
FORWARD_TRANSITIONS: Dict[str, FrozenSet[str]] = {
    SUBMITTED: frozenset({UNDER_REVIEW}),
    UNDER_REVIEW: frozenset({APPROVED}),
    APPROVED: frozenset({MEET_SCHEDULED}),
    MEET_SCHEDULED: frozenset({MEET_COMPLETED}),
    # The home visit is optional
    MEET_COMPLETED: frozenset({HOME_VISIT_SCHEDULED, ADOPTION_APPROVED}),
    HOME_VISIT_SCHEDULED: frozenset({HOME_VISIT_COMPLETED}),
    HOME_VISIT_COMPLETED: frozenset({ADOPTION_APPROVED}),
    ADOPTION_APPROVED: frozenset({ADOPTION_COMPLETED}),
    ADOPTION_COMPLETED: frozenset({ADOPTION_RETURNED}),
}

# Reachable from every non-terminal status
EXIT_TRANSITIONS: FrozenSet[str] = frozenset({REJECTED, WITHDRAWN, ON_HOLD})


def _build_graph() -> Dict[str, FrozenSet[str]]:
    graph: Dict[str, FrozenSet[str]] = {}
    for status in ALL_STATUSES:
        targets = set(FORWARD_TRANSITIONS.get(status, frozenset()))
        if status not in TERMINAL_STATUSES:
            targets |= EXIT_TRANSITIONS - {status}
        graph[status] = frozenset(targets)
    return graph


TRANSITIONS: Dict[str, FrozenSet[str]] = _build_graph()


def allowed_targets(current: str, held_from: Optional[str] = None) -> FrozenSet[str]:
    """Every status reachable from `current` in one step."""
    targets = TRANSITIONS.get(current, frozenset())
    if current == ON_HOLD and held_from:
        targets = targets | {held_from}
    return targets


def can_transition(current: str, target: str, held_from: Optional[str] = None) -> bool:
    return target in allowed_targets(current, held_from)


def ensure_transition(current: str, target: str, held_from: Optional[str] = None) -> None:
    """Raise InvalidTransitionError unless `target` is one step from `current`."""
    targets = allowed_targets(current, held_from)
    if target not in targets:
        raise InvalidTransitionError(current=current, target=target, allowed=targets)


def is_resume(current: str, target: str, held_from: Optional[str]) -> bool:
    """True when the move takes an on-hold application back to where it was held."""
    return current == ON_HOLD and held_from is not None and target == held_from


# ══════════════════════════════════════════════════════════════════════════
# Visits
# ══════════════════════════════════════════════════════════════════════════

# Application statuses in which each visit type may be scheduled
VISIT_SCHEDULING_STATUSES: Dict[str, FrozenSet[str]] = {
    VISIT_MEET_AND_GREET: frozenset({APPROVED}),
    VISIT_HOME: frozenset({MEET_COMPLETED}),
    VISIT_FOLLOW_UP: frozenset({ADOPTION_APPROVED, ADOPTION_COMPLETED}),
}

# An approved visit advances the application to the paired status, provided it
# is currently in one of the source statuses. meet-scheduled / home-visit-scheduled
# are accepted as well so shelters that mark the schedule explicitly still work.
VISIT_COMPLETION: Dict[str, Tuple[FrozenSet[str], str]] = {
    VISIT_MEET_AND_GREET: (frozenset({APPROVED, MEET_SCHEDULED}), MEET_COMPLETED),
    VISIT_HOME: (frozenset({MEET_COMPLETED, HOME_VISIT_SCHEDULED}), HOME_VISIT_COMPLETED),
}

VISIT_OUTCOMES = frozenset({OUTCOME_APPROVED, OUTCOME_REJECTED, OUTCOME_NEEDS_FOLLOW_UP})


def visit_outcome_target(
    visit_type: str,
    outcome: str,
    current: str,
    held_from: Optional[str] = None,
) -> Optional[str]:
    """
    Status the application moves to when a visit completes, or None.

    A 'rejected' outcome rejects the application. The exception is a
    follow-up after the adoption completed, which is recorded only, as are
    'needs-follow-up' outcomes and approved follow-ups.
    Raises InvalidTransitionError when the application is not in a status the
    outcome can move it from.
    """
    if outcome == OUTCOME_REJECTED:
        if visit_type == VISIT_FOLLOW_UP and current in TERMINAL_STATUSES:
            return None
        ensure_transition(current, REJECTED, held_from)
        return REJECTED

    if visit_type == VISIT_FOLLOW_UP or outcome == OUTCOME_NEEDS_FOLLOW_UP:
        return None

    sources, target = VISIT_COMPLETION[visit_type]
    if current not in sources:
        raise InvalidTransitionError(
            current=current,
            target=target,
            allowed=allowed_targets(current, held_from),
            context={"visit_type": visit_type, "expected_statuses": sorted(sources)},
        )
    return target


# ══════════════════════════════════════════════════════════════════════════
# Presentation Helpers
# ══════════════════════════════════════════════════════════════════════════

# Application columns stamped when the status is entered
STATUS_TIMESTAMP_FIELDS: Dict[str, str] = {
    APPROVED: "approved_at",
    REJECTED: "rejected_at",
    WITHDRAWN: "withdrawn_at",
    ADOPTION_COMPLETED: "completed_at",
    ADOPTION_RETURNED: "returned_at",
}

NEXT_STEPS: Dict[str, Tuple[str, ...]] = {
    SUBMITTED: ("Review application", "Contact references", "Schedule meet & greet"),
    UNDER_REVIEW: ("Complete reference checks", "Schedule meet & greet"),
    APPROVED: ("Schedule meet & greet",),
    MEET_SCHEDULED: ("Complete meet & greet",),
    MEET_COMPLETED: ("Schedule home visit (if required)", "Finalize adoption"),
    HOME_VISIT_SCHEDULED: ("Complete home visit",),
    HOME_VISIT_COMPLETED: ("Approve adoption", "Process payment"),
    ADOPTION_APPROVED: ("Process payment", "Sign contract", "Schedule pickup"),
    ADOPTION_COMPLETED: ("Follow-up calls", "Support as needed"),
}


def next_steps(status: str) -> Tuple[str, ...]:
    return NEXT_STEPS.get(status, ())

# -*- coding: utf-8 -*-
"""
Application lifecycle.

    not_started -> in_progress -> submitted -> accepted -> confirmed
                                           \            \
                                            -> waitlisted <-

Applicant writes only ever move a record along the first two arrows; the
authority decides submitted -> accepted / waitlisted; the owner answers an
acceptance with confirm / decline.
"""
from enum import Enum
from typing import Dict, Tuple

from applicant_portal.errors import TransitionRejected


class Status(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    SUBMITTED = "submitted"
    ACCEPTED = "accepted"
    WAITLISTED = "waitlisted"
    CONFIRMED = "confirmed"


class Event(str, Enum):
    EDIT = "edit"
    SUBMIT = "submit"
    ACCEPT = "accept"
    WAITLIST = "waitlist"
    CONFIRM_ATTENDANCE = "confirm_attendance"
    DECLINE_ATTENDANCE = "decline_attendance"


class Actor(str, Enum):
    APPLICANT = "applicant"
    AUTHORITY = "authority"


# (from, event) -> (to, actor allowed to fire it)
TRANSITIONS: Dict[Tuple[Status, Event], Tuple[Status, Actor]] = {
    (Status.NOT_STARTED, Event.EDIT): (Status.IN_PROGRESS, Actor.APPLICANT),
    (Status.IN_PROGRESS, Event.EDIT): (Status.IN_PROGRESS, Actor.APPLICANT),
    (Status.IN_PROGRESS, Event.SUBMIT): (Status.SUBMITTED, Actor.APPLICANT),
    (Status.SUBMITTED, Event.ACCEPT): (Status.ACCEPTED, Actor.AUTHORITY),
    (Status.SUBMITTED, Event.WAITLIST): (Status.WAITLISTED, Actor.AUTHORITY),
    (Status.ACCEPTED, Event.CONFIRM_ATTENDANCE): (Status.CONFIRMED, Actor.APPLICANT),
    (Status.ACCEPTED, Event.DECLINE_ATTENDANCE): (Status.WAITLISTED, Actor.APPLICANT),
}

# once here, the stored status wins over anything an applicant sends
LOCKED = frozenset({Status.SUBMITTED, Status.ACCEPTED, Status.WAITLISTED, Status.CONFIRMED})

APPLICANT_INTENTS = frozenset({Status.IN_PROGRESS, Status.SUBMITTED})

# no applicant action leads out of these
TERMINAL_FOR_APPLICANT = frozenset({Status.CONFIRMED, Status.WAITLISTED})

# direct successors; precedes() walks the transitive closure
_ORDER: Dict[Status, frozenset] = {
    Status.NOT_STARTED: frozenset({Status.IN_PROGRESS}),
    Status.IN_PROGRESS: frozenset({Status.SUBMITTED}),
    Status.SUBMITTED: frozenset({Status.ACCEPTED, Status.WAITLISTED}),
    Status.ACCEPTED: frozenset({Status.CONFIRMED, Status.WAITLISTED}),
    Status.WAITLISTED: frozenset(),
    Status.CONFIRMED: frozenset(),
}


def is_locked(status) -> bool:
    return Status(status) in LOCKED


def precedes(a, b) -> bool:
    """True when `a` comes strictly before `b` in the lifecycle partial order."""
    a, b = Status(a), Status(b)
    frontier = set(_ORDER[a])
    seen = set()
    while frontier:
        nxt = frontier.pop()
        if nxt == b:
            return True
        seen.add(nxt)
        frontier |= _ORDER[nxt] - seen
    return False


def transition(current, event, actor=Actor.APPLICANT) -> Status:
    current, event, actor = Status(current), Event(event), Actor(actor)
    entry = TRANSITIONS.get((current, event))
    if entry is None:
        raise TransitionRejected(f"Cannot {event.value} an application that is {current.value}")
    target, allowed = entry
    if actor != allowed:
        raise TransitionRejected(f"{event.value} is reserved for the {allowed.value}")
    return target


def ratchet(stored, intent) -> Status:
    """Status produced by an applicant-originated write."""
    try:
        intent = Status(intent)
    except ValueError:
        raise TransitionRejected(f"Unknown status intent: {intent!r}")
    if intent not in APPLICANT_INTENTS:
        raise TransitionRejected(f"Applicants cannot request status {intent.value}")
    stored = Status(stored)
    if stored in LOCKED:
        return stored
    return intent

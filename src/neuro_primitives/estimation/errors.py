"""Exception types raised inside the estimation engine.

Only property parsing raises; the orchestrator catches every
:class:`MalformedEventError`, records the event as skipped and carries on.
"""

from __future__ import annotations


class EstimationError(Exception):
    """Base class for estimation-engine errors."""


class MalformedEventError(EstimationError, ValueError):
    """An event is missing a required property or carries an invalid one."""

    def __init__(self, event_id: str, event_type: str, reason: str) -> None:
        self.event_id = event_id
        self.event_type = event_type
        self.reason = reason
        super().__init__(f"{event_type} event {event_id!r}: {reason}")

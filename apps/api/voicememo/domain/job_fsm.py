"""Transcript job lifecycle transition rules."""

from voicememo.errors import ApiError
from voicememo.schemas.transcript import TranscriptStatus

TERMINAL_STATES: frozenset[TranscriptStatus] = frozenset(
    {
        TranscriptStatus.COMPLETE,
        TranscriptStatus.FAILED,
    }
)

_ALLOWED_TRANSITIONS: dict[TranscriptStatus, set[TranscriptStatus]] = {
    TranscriptStatus.PENDING: {
        TranscriptStatus.TRANSCRIBING,
        TranscriptStatus.SUMMARIZING,
        TranscriptStatus.COMPLETE,
    },
    TranscriptStatus.TRANSCRIBING: {
        TranscriptStatus.SUMMARIZING,
        TranscriptStatus.COMPLETE,
        TranscriptStatus.FAILED,
    },
    TranscriptStatus.SUMMARIZING: {TranscriptStatus.COMPLETE, TranscriptStatus.FAILED},
    TranscriptStatus.COMPLETE: set(),
    TranscriptStatus.FAILED: set(),
}

# Position along the pipeline; observed statuses never move to a lower rank.
STATUS_RANK: dict[TranscriptStatus, int] = {
    TranscriptStatus.PENDING: 0,
    TranscriptStatus.TRANSCRIBING: 1,
    TranscriptStatus.SUMMARIZING: 2,
    TranscriptStatus.COMPLETE: 3,
    TranscriptStatus.FAILED: 3,
}


def is_terminal(status: TranscriptStatus) -> bool:
    return status in TERMINAL_STATES


def allowed_next_statuses(status: TranscriptStatus) -> list[TranscriptStatus]:
    """Return deterministically ordered allowed successors for a status."""
    return sorted(_ALLOWED_TRANSITIONS.get(status, set()), key=lambda s: s.value)


def ensure_transition(old_status: TranscriptStatus, new_status: TranscriptStatus) -> None:
    """Validate transition according to lifecycle rules."""
    if old_status in TERMINAL_STATES:
        raise ApiError(
            status_code=409,
            code="FSM_TERMINAL_IMMUTABLE",
            message="Terminal state cannot be mutated",
            details={
                "current_status": old_status,
                "attempted_status": new_status,
                "allowed_next_statuses": [],
            },
        )

    if new_status not in _ALLOWED_TRANSITIONS.get(old_status, set()):
        raise ApiError(
            status_code=409,
            code="FSM_TRANSITION_INVALID",
            message="Invalid status transition",
            details={
                "current_status": old_status,
                "attempted_status": new_status,
                "allowed_next_statuses": allowed_next_statuses(old_status),
            },
        )

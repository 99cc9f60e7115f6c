"""Document status state machine.

pending → processing → completed | failed. completed and failed are
terminal. pending → failed is reserved for runs that fail before processing
could start, so a document never stays pending after its run has ended.
"""

from lexassist.core.models import DocumentStatus
from lexassist.errors import InvalidStatusTransitionError

ALLOWED_TRANSITIONS: dict[DocumentStatus, frozenset[DocumentStatus]] = {
    DocumentStatus.PENDING: frozenset({DocumentStatus.PROCESSING, DocumentStatus.FAILED}),
    DocumentStatus.PROCESSING: frozenset({DocumentStatus.COMPLETED, DocumentStatus.FAILED}),
    DocumentStatus.COMPLETED: frozenset(),
    DocumentStatus.FAILED: frozenset(),
}

TERMINAL_STATUSES: frozenset[DocumentStatus] = frozenset(
    {DocumentStatus.COMPLETED, DocumentStatus.FAILED}
)


def can_transition(current: DocumentStatus | str, target: DocumentStatus | str) -> bool:
    """Return True if a document may move from current to target."""
    return DocumentStatus(target) in ALLOWED_TRANSITIONS[DocumentStatus(current)]


def ensure_transition(current: DocumentStatus | str, target: DocumentStatus | str) -> None:
    """Raise InvalidStatusTransitionError unless current → target is allowed."""
    if not can_transition(current, target):
        raise InvalidStatusTransitionError(
            f"Document status cannot move from {DocumentStatus(current).value} "
            f"to {DocumentStatus(target).value}"
        )


def is_terminal(status: DocumentStatus | str) -> bool:
    return DocumentStatus(status) in TERMINAL_STATUSES

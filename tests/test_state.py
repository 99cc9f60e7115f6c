"""Tests for the document status state machine."""

import pytest

from lexassist.core.models import DocumentStatus
from lexassist.core.state import can_transition, ensure_transition, is_terminal
from lexassist.errors import InvalidStatusTransitionError


class TestTransitions:
    """Allowed and forbidden status moves."""

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (DocumentStatus.PENDING, DocumentStatus.PROCESSING),
            (DocumentStatus.PROCESSING, DocumentStatus.COMPLETED),
            (DocumentStatus.PROCESSING, DocumentStatus.FAILED),
            (DocumentStatus.PENDING, DocumentStatus.FAILED),
        ],
    )
    def test_forward_moves_are_allowed(self, current: DocumentStatus, target: DocumentStatus) -> None:
        assert can_transition(current, target)
        ensure_transition(current, target)

    @pytest.mark.parametrize(
        ("current", "target"),
        [
            (DocumentStatus.PROCESSING, DocumentStatus.PENDING),
            (DocumentStatus.COMPLETED, DocumentStatus.PROCESSING),
            (DocumentStatus.COMPLETED, DocumentStatus.FAILED),
            (DocumentStatus.FAILED, DocumentStatus.COMPLETED),
            (DocumentStatus.PENDING, DocumentStatus.COMPLETED),
            (DocumentStatus.PENDING, DocumentStatus.PENDING),
        ],
    )
    def test_backward_and_skipping_moves_raise(self, current: DocumentStatus, target: DocumentStatus) -> None:
        assert not can_transition(current, target)
        with pytest.raises(InvalidStatusTransitionError):
            ensure_transition(current, target)

    def test_accepts_raw_status_strings(self) -> None:
        assert can_transition("pending", "processing")
        assert not can_transition("completed", "pending")

    def test_completed_and_failed_are_terminal(self) -> None:
        assert is_terminal(DocumentStatus.COMPLETED)
        assert is_terminal("failed")
        assert not is_terminal(DocumentStatus.PENDING)
        assert not is_terminal(DocumentStatus.PROCESSING)

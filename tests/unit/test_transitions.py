"""Unit tests for workflow transition tables."""

from __future__ import annotations

import pytest

from costimator.errors import InvalidTransitionError
from costimator.models import EstimateStatus, VersionStatus
from costimator.workflow.transitions import (
    ESTIMATE_TRANSITIONS,
    VERSION_TRANSITIONS,
    allowed_actions,
    check_transition,
)


class TestCheckTransition:
    def test_returns_target(self):
        target = check_transition(VERSION_TRANSITIONS, "approve", VersionStatus.SUBMITTED)

        assert target == VersionStatus.APPROVED

    def test_accepts_raw_status_string(self):
        target = check_transition(VERSION_TRANSITIONS, "supersede", "approved", "version")

        assert target == VersionStatus.SUPERSEDED

    def test_illegal_source(self):
        with pytest.raises(InvalidTransitionError) as exc_info:
            check_transition(VERSION_TRANSITIONS, "submit", "rejected", "version")

        error = exc_info.value
        assert error.action == "submit"
        assert error.current_status == "rejected"
        assert str(error) == "Cannot submit version with status: rejected"

    def test_unknown_action(self):
        with pytest.raises(InvalidTransitionError):
            check_transition(ESTIMATE_TRANSITIONS, "archive", EstimateStatus.DRAFT)


class TestAllowedActions:
    def test_version_actions(self):
        assert allowed_actions(VERSION_TRANSITIONS, VersionStatus.DRAFT) == ["submit"]
        assert allowed_actions(VERSION_TRANSITIONS, "submitted") == ["approve", "reject"]
        assert allowed_actions(VERSION_TRANSITIONS, VersionStatus.APPROVED) == ["supersede"]
        assert allowed_actions(VERSION_TRANSITIONS, VersionStatus.SUPERSEDED) == []

    def test_estimate_terminal_states(self):
        assert allowed_actions(ESTIMATE_TRANSITIONS, EstimateStatus.APPROVED) == []
        assert allowed_actions(ESTIMATE_TRANSITIONS, EstimateStatus.REJECTED) == []

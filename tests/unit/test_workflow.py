"""Tests for the Workflow state-machine value objects and the declared lifecycles."""

import pytest

from ledger_kernel.domain.workflow import Guard, Transition, Workflow
from ledger_kernel.exceptions import InvalidStateTransitionError
from ledger_kernel.services.period_service import PERIOD_WORKFLOW
from ledger_modules.expense.workflows import (
    EDITABLE_STATUSES,
    EXPENSE_WORKFLOW,
    UNPOSTED_STATUSES,
)


# ---------------------------------------------------------------------------
# Construction checks
# ---------------------------------------------------------------------------


class TestWorkflowConstruction:
    def test_initial_state_must_be_a_state(self):
        with pytest.raises(ValueError, match="initial_state"):
            Workflow(
                name="w",
                description="",
                initial_state="missing",
                states=("a", "b"),
                transitions=(),
            )

    def test_transition_to_unknown_state_rejected(self):
        with pytest.raises(ValueError, match="unknown state"):
            Workflow(
                name="w",
                description="",
                initial_state="a",
                states=("a", "b"),
                transitions=(Transition("a", "c", action="go"),),
            )

    def test_terminal_state_cannot_have_outgoing_transition(self):
        with pytest.raises(ValueError, match="terminal state"):
            Workflow(
                name="w",
                description="",
                initial_state="a",
                states=("a", "b"),
                transitions=(Transition("b", "a", action="back"),),
                terminal_states=("b",),
            )

    def test_guard_is_descriptive(self):
        guard = Guard("has_lines", "at least one line")
        t = Transition("a", "b", action="go", guard=guard)
        assert t.guard.name == "has_lines"
        assert t.posts_entry is False


# ---------------------------------------------------------------------------
# Period lifecycle
# ---------------------------------------------------------------------------


class TestPeriodWorkflow:
    def test_open_allows_close_and_lock(self):
        assert set(PERIOD_WORKFLOW.actions_from("open")) == {"close", "lock"}

    def test_closed_allows_reopen_and_lock(self):
        assert set(PERIOD_WORKFLOW.actions_from("closed")) == {"reopen", "lock"}

    def test_locked_is_terminal(self):
        assert PERIOD_WORKFLOW.actions_from("locked") == ()
        with pytest.raises(InvalidStateTransitionError) as exc_info:
            PERIOD_WORKFLOW.require_transition("locked", "reopen")
        assert exc_info.value.code == "INVALID_STATE_TRANSITION"
        assert exc_info.value.current_state == "locked"

    def test_reopen_from_open_is_not_a_transition(self):
        assert PERIOD_WORKFLOW.find_transition("open", "reopen") is None


# ---------------------------------------------------------------------------
# Expense lifecycle
# ---------------------------------------------------------------------------


class TestExpenseWorkflow:
    def test_initial_state_is_draft(self):
        assert EXPENSE_WORKFLOW.initial_state == "draft"

    def test_happy_path(self):
        state = "draft"
        for action in ("submit", "approve", "pay"):
            state = EXPENSE_WORKFLOW.require_transition(state, action).to_state
        assert state == "paid"

    def test_direct_approval_from_draft(self):
        assert EXPENSE_WORKFLOW.require_transition("draft", "approve").to_state == "approved"

    def test_posting_transitions(self):
        assert EXPENSE_WORKFLOW.require_transition("pending_approval", "approve").posts_entry
        assert EXPENSE_WORKFLOW.require_transition("approved", "pay").posts_entry
        assert not EXPENSE_WORKFLOW.require_transition("draft", "submit").posts_entry

    @pytest.mark.parametrize("state", ["paid", "void"])
    def test_terminal_states(self, state):
        assert EXPENSE_WORKFLOW.actions_from(state) == ()

    def test_cannot_pay_unapproved(self):
        with pytest.raises(InvalidStateTransitionError):
            EXPENSE_WORKFLOW.require_transition("draft", "pay")

    def test_void_from_every_open_state(self):
        for state in ("draft", "pending_approval", "approved"):
            assert EXPENSE_WORKFLOW.require_transition(state, "void").to_state == "void"

    def test_status_groups(self):
        assert UNPOSTED_STATUSES < EDITABLE_STATUSES
        assert "paid" not in EDITABLE_STATUSES

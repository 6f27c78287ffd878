"""Expense Sub-ledger Workflows.

State machine for expense documents.
"""

from ledger_kernel.domain.workflow import Guard, Transition, Workflow
from ledger_kernel.logging_config import get_logger
from ledger_modules.expense.models import ExpenseStatus

logger = get_logger("modules.expense.workflows")


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

HAS_LINES = Guard(
    name="has_lines",
    description="Expense has at least one line with a positive total",
)

LIABILITY_POSTED = Guard(
    name="liability_posted",
    description="The AP liability entry exists before payment",
)

logger.info(
    "expense_workflow_guards_defined",
    extra={"guards": [HAS_LINES.name, LIABILITY_POSTED.name]},
)


# -----------------------------------------------------------------------------
# Expense lifecycle
# -----------------------------------------------------------------------------

_DRAFT = ExpenseStatus.DRAFT.value
_PENDING = ExpenseStatus.PENDING_APPROVAL.value
_APPROVED = ExpenseStatus.APPROVED.value
_PAID = ExpenseStatus.PAID.value
_VOID = ExpenseStatus.VOID.value

EXPENSE_WORKFLOW = Workflow(
    name="expense",
    description="Expense document lifecycle",
    initial_state=_DRAFT,
    states=(_DRAFT, _PENDING, _APPROVED, _PAID, _VOID),
    transitions=(
        Transition(_DRAFT, _PENDING, action="submit", guard=HAS_LINES),
        Transition(_DRAFT, _APPROVED, action="approve", guard=HAS_LINES, posts_entry=True),
        Transition(_PENDING, _APPROVED, action="approve", guard=HAS_LINES, posts_entry=True),
        Transition(_APPROVED, _PAID, action="pay", guard=LIABILITY_POSTED, posts_entry=True),
        Transition(_DRAFT, _VOID, action="void"),
        Transition(_PENDING, _VOID, action="void"),
        Transition(_APPROVED, _VOID, action="void", posts_entry=True),
    ),
    terminal_states=(_PAID, _VOID),
)

# Statuses in which the document can still be edited
EDITABLE_STATUSES = frozenset({_DRAFT, _PENDING, _APPROVED})
# Edits that change amounts or accounts need the document unposted
UNPOSTED_STATUSES = frozenset({_DRAFT, _PENDING})

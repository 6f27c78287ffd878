"""
Typed Exception Hierarchy for the Ledger Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A ledger caller has to tell three outcomes apart:

  - "nothing happened"      -- input rejected (ValidationError family)
  - "partially happened"    -- a batch posted some records and skipped others
                               (reported in AutoPostResult, never raised)
  - "fatal"                 -- storage unavailable (sqlalchemy errors propagate)

So every rejection is a typed class with:
  1. a CODE attribute (machine-readable, API-safe)
  2. structured DATA attributes (not just a message string)

Example - WRONG way to handle errors:
    try:
        writer.post_entry(...)
    except Exception as e:
        if "closed" in str(e):
            ...

Example - RIGHT way:
    try:
        writer.post_entry(...)
    except PeriodClosedError as e:
        api_response(code=e.code, period=e.period_name)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    LedgerError (base)
    |
    +-- ValidationError
    |   +-- InvalidInputError            (also a ValueError)
    |   +-- UnbalancedEntryError
    |   +-- InsufficientLinesError
    |   +-- NegativeAmountError
    |   +-- InvalidAccountError
    |   +-- InactiveAccountError
    |   +-- InvalidSubTypeError
    |   +-- DuplicateAccountNumberError
    |   +-- ExpenseValidationError
    |
    +-- PeriodError
    |   +-- PeriodClosedError
    |   +-- PeriodNotFoundError          (also a NotFoundError)
    |   +-- FiscalYearExistsError
    |   +-- PeriodOverlapError
    |
    +-- NotFoundError
    |   +-- AccountNotFoundError
    |   +-- EntryNotFoundError
    |   +-- ExpenseNotFoundError
    |   +-- SourceRecordNotFoundError
    |
    +-- ImmutableFieldError
    +-- AlreadyReversedError
    +-- InvalidStateTransitionError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category    | Code                      | When Raised
------------|---------------------------|------------------------------------------
Validation  | VALIDATION_ERROR          | Malformed input (generic)
            | INVALID_INPUT             | Bad argument (blank name, unknown enum, ...)
            | UNBALANCED_ENTRY          | |debits - credits| >= 0.01
            | INSUFFICIENT_LINES        | Fewer than two non-zero lines
            | NEGATIVE_AMOUNT           | Debit or credit below zero
            | INVALID_ACCOUNT           | Line references an unknown account
            | INACTIVE_ACCOUNT          | Line references a deactivated account
            | INVALID_SUB_TYPE          | Sub-type not allowed for account type
            | DUPLICATE_ACCOUNT_NUMBER  | Account number already registered
            | EXPENSE_INVALID           | Expense document is malformed
------------|---------------------------|------------------------------------------
Period      | PERIOD_CLOSED             | Posting into a closed/locked period
            | PERIOD_NOT_FOUND          | No period covers the date / unknown id
            | FISCAL_YEAR_EXISTS        | Year already has periods
            | PERIOD_OVERLAP            | Date range collides with another period
------------|---------------------------|------------------------------------------
Lookup      | NOT_FOUND                 | Unknown id (generic)
            | ACCOUNT_NOT_FOUND         | Unknown account id / number
            | ENTRY_NOT_FOUND           | Unknown journal entry id
            | EXPENSE_NOT_FOUND         | Unknown expense id
            | SOURCE_RECORD_NOT_FOUND   | Unknown auto-post source record
------------|---------------------------|------------------------------------------
State       | IMMUTABLE_FIELD           | type/number change after posting
            | ALREADY_REVERSED          | Entry was already reversed
            | INVALID_STATE_TRANSITION  | Workflow transition out of order

===============================================================================
HANDLING PATTERNS
===============================================================================

Catch the category when the reaction is the same for every member:

    except ValidationError as e:       # 400-style rejection
    except NotFoundError as e:         # 404-style rejection

Batch operations (auto-posting) catch LedgerError per record, count a skip,
and continue.  Nothing else in the kernel catches LedgerError.
"""


class LedgerError(Exception):
    """Base exception for all ledger errors."""

    code: str = "LEDGER_ERROR"

    def __init__(self, message: str = ""):
        super().__init__(message)
        self.message = message


# =============================================================================
# Validation Errors
# =============================================================================


class ValidationError(LedgerError):
    """Input was rejected; nothing was written."""

    code: str = "VALIDATION_ERROR"


class InvalidInputError(ValidationError, ValueError):
    """An argument to a ledger operation is malformed."""

    code: str = "INVALID_INPUT"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class UnbalancedEntryError(ValidationError):
    """Journal entry debits don't equal credits."""

    code: str = "UNBALANCED_ENTRY"

    def __init__(self, total_debits: str, total_credits: str):
        self.total_debits = total_debits
        self.total_credits = total_credits
        super().__init__(
            f"Entry is unbalanced: debits={total_debits}, credits={total_credits}"
        )


class InsufficientLinesError(ValidationError):
    """A journal entry needs at least two non-zero lines."""

    code: str = "INSUFFICIENT_LINES"

    def __init__(self, line_count: int, minimum: int = 2):
        self.line_count = line_count
        self.minimum = minimum
        super().__init__(
            f"At least {minimum} non-zero lines are required, got {line_count}"
        )


class NegativeAmountError(ValidationError):
    """Debit and credit amounts are never negative."""

    code: str = "NEGATIVE_AMOUNT"

    def __init__(self, line_index: int, amount: str):
        self.line_index = line_index
        self.amount = amount
        super().__init__(f"Line {line_index} has a negative amount: {amount}")


class InvalidAccountError(ValidationError):
    """Line references an account that does not exist."""

    code: str = "INVALID_ACCOUNT"

    def __init__(self, account_ref: str, reason: str = "account does not exist"):
        self.account_ref = account_ref
        self.reason = reason
        super().__init__(f"Invalid account {account_ref}: {reason}")


class InactiveAccountError(ValidationError):
    """Line references a deactivated account."""

    code: str = "INACTIVE_ACCOUNT"

    def __init__(self, account_number: str):
        self.account_number = account_number
        super().__init__(f"Account {account_number} is inactive")


class InvalidSubTypeError(ValidationError):
    """Sub-type is not in the allowed set for the account type."""

    code: str = "INVALID_SUB_TYPE"

    def __init__(self, account_type: str, sub_type: str, allowed: tuple[str, ...]):
        self.account_type = account_type
        self.sub_type = sub_type
        self.allowed = allowed
        super().__init__(
            f"Sub-type {sub_type!r} is not valid for {account_type} accounts "
            f"(allowed: {', '.join(allowed)})"
        )


class DuplicateAccountNumberError(ValidationError):
    """Account number is already registered."""

    code: str = "DUPLICATE_ACCOUNT_NUMBER"

    def __init__(self, account_number: str):
        self.account_number = account_number
        super().__init__(f"Account number {account_number} already exists")


class ExpenseValidationError(ValidationError):
    """Expense document is malformed."""

    code: str = "EXPENSE_INVALID"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(f"Invalid expense: {reason}")


# =============================================================================
# Lookup Errors
# =============================================================================


class NotFoundError(LedgerError):
    """An id given by the caller does not exist."""

    code: str = "NOT_FOUND"


class AccountNotFoundError(NotFoundError):
    """Account does not exist."""

    code: str = "ACCOUNT_NOT_FOUND"

    def __init__(self, account_ref: str):
        self.account_ref = account_ref
        super().__init__(f"Account not found: {account_ref}")


class EntryNotFoundError(NotFoundError):
    """Journal entry does not exist."""

    code: str = "ENTRY_NOT_FOUND"

    def __init__(self, entry_id: str):
        self.entry_id = entry_id
        super().__init__(f"Journal entry not found: {entry_id}")


class ExpenseNotFoundError(NotFoundError):
    """Expense does not exist."""

    code: str = "EXPENSE_NOT_FOUND"

    def __init__(self, expense_id: str):
        self.expense_id = expense_id
        super().__init__(f"Expense not found: {expense_id}")


class SourceRecordNotFoundError(NotFoundError):
    """Auto-post source record does not exist."""

    code: str = "SOURCE_RECORD_NOT_FOUND"

    def __init__(self, source_type: str, source_id: str):
        self.source_type = source_type
        self.source_id = source_id
        super().__init__(f"{source_type} record not found: {source_id}")


# =============================================================================
# Period Errors
# =============================================================================


class PeriodError(LedgerError):
    """Base for accounting-period errors."""

    code: str = "PERIOD_ERROR"


class PeriodClosedError(PeriodError):
    """Attempted to post into a closed or locked period."""

    code: str = "PERIOD_CLOSED"

    def __init__(self, period_name: str, entry_date: str, status: str = "closed"):
        self.period_name = period_name
        self.entry_date = entry_date
        self.status = status
        super().__init__(
            f"Cannot post to {status} period {period_name} (date: {entry_date})"
        )


class PeriodNotFoundError(PeriodError, NotFoundError):
    """No period covers the date, or the period id is unknown."""

    code: str = "PERIOD_NOT_FOUND"

    def __init__(self, period_ref: str):
        self.period_ref = period_ref
        super().__init__(f"No accounting period found for: {period_ref}")


class FiscalYearExistsError(PeriodError):
    """Periods already exist for the fiscal year."""

    code: str = "FISCAL_YEAR_EXISTS"

    def __init__(self, fiscal_year: int, existing_count: int):
        self.fiscal_year = fiscal_year
        self.existing_count = existing_count
        super().__init__(
            f"Fiscal year {fiscal_year} already has {existing_count} period(s)"
        )


class PeriodOverlapError(PeriodError):
    """Period date range overlaps an existing period."""

    code: str = "PERIOD_OVERLAP"

    def __init__(
        self,
        new_period: str,
        existing_period: str,
        new_start: str,
        new_end: str,
        existing_start: str,
        existing_end: str,
    ):
        self.new_period = new_period
        self.existing_period = existing_period
        self.new_start = new_start
        self.new_end = new_end
        self.existing_start = existing_start
        self.existing_end = existing_end
        super().__init__(
            f"Period {new_period} ({new_start} to {new_end}) overlaps with "
            f"{existing_period} ({existing_start} to {existing_end})"
        )


# =============================================================================
# State Errors
# =============================================================================


class ImmutableFieldError(LedgerError):
    """Field cannot change once journal lines reference the record."""

    code: str = "IMMUTABLE_FIELD"

    def __init__(self, entity: str, field: str, reason: str):
        self.entity = entity
        self.field = field
        self.reason = reason
        super().__init__(f"Cannot change {entity}.{field}: {reason}")


class AlreadyReversedError(LedgerError):
    """Entry has already been reversed."""

    code: str = "ALREADY_REVERSED"

    def __init__(self, entry_id: str, reversed_by_id: str | None = None):
        self.entry_id = entry_id
        self.reversed_by_id = reversed_by_id
        super().__init__(
            f"Journal entry {entry_id} is already reversed"
            + (f" by {reversed_by_id}" if reversed_by_id else "")
        )


class InvalidStateTransitionError(LedgerError):
    """Workflow transition requested from a state that does not allow it."""

    code: str = "INVALID_STATE_TRANSITION"

    def __init__(self, entity: str, current_state: str, action: str):
        self.entity = entity
        self.current_state = current_state
        self.action = action
        super().__init__(
            f"Cannot {action} {entity} in state {current_state!r}"
        )

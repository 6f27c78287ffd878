"""
AccountService -- chart-of-accounts registry.

Responsibility:
    Registers, updates, deactivates and seeds accounts.  Validates the
    sub-type against the account type and derives the normal balance.

Architecture position:
    Kernel > Services -- imperative shell.
    Called by the API layer for COA maintenance and by JournalWriter /
    modules to resolve account numbers.

Invariants enforced:
    - Account number uniqueness (checked here, backed by uq_account_number).
    - normal_balance follows account_type (Account.assign_type).
    - sub_type in ALLOWED_SUB_TYPES[account_type].
    - account_type and account_number freeze once any journal line
      references the account.
    - Accounts are never deleted.
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - DuplicateAccountNumberError, InvalidSubTypeError, AccountNotFoundError,
      ImmutableFieldError, InvalidInputError (blank or unknown input).

Audit relevance:
    account_created, account_updated (with the changed field names) and
    chart_seeded are logged at INFO.
"""

from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import exists, func, select
from sqlalchemy.orm import Session

from ledger_kernel.domain.default_chart import DEFAULT_CHART, ChartTemplateEntry
from ledger_kernel.domain.dtos import AccountInfo
from ledger_kernel.exceptions import (
    AccountNotFoundError,
    DuplicateAccountNumberError,
    ImmutableFieldError,
    InvalidAccountError,
    InvalidInputError,
    InvalidSubTypeError,
)
from ledger_kernel.logging_config import get_logger
from ledger_kernel.models.account import (
    ALLOWED_SUB_TYPES,
    DEFAULT_SUB_TYPE,
    Account,
    AccountSubType,
    AccountType,
    is_sub_type_allowed,
)
from ledger_kernel.models.journal import JournalLine
from ledger_kernel.services.base import BaseService

logger = get_logger("services.account")

_UPDATABLE_FIELDS = frozenset({
    "name",
    "description",
    "is_active",
    "tax_code",
    "sub_type",
    "account_type",
    "account_number",
    "parent_id",
})

# Fields that reclassify history once lines reference the account
_STRUCTURAL_FIELDS = frozenset({"account_type", "account_number"})


def _coerce_account_type(value: AccountType | str) -> AccountType:
    try:
        return AccountType(value)
    except ValueError:
        raise InvalidInputError(
            "account_type",
            f"{value!r} is not one of {', '.join(t.value for t in AccountType)}",
        ) from None


@dataclass(frozen=True)
class SeedResult:
    """Outcome of seed_default_chart()."""

    created: int
    skipped: int


class AccountService(BaseService[Account]):
    """
    Chart-of-accounts registry.

    Contract:
        Accepts plain values, returns frozen AccountInfo DTOs.

    Non-goals:
        - Does NOT compute balances (LedgerSelector).
        - Does NOT call ``session.commit()``.
    """

    def __init__(self, session: Session):
        super().__init__(session)

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------

    def _load(self, account_id: UUID) -> Account:
        account = self.session.get(Account, account_id)
        if account is None:
            raise AccountNotFoundError(str(account_id))
        return account

    def get_account(self, account_id: UUID) -> AccountInfo:
        return AccountInfo.from_model(self._load(account_id))

    def get_by_number(self, account_number: str) -> AccountInfo:
        account = self._find_by_number(account_number)
        if account is None:
            raise AccountNotFoundError(account_number)
        return AccountInfo.from_model(account)

    def _find_by_number(self, account_number: str) -> Account | None:
        return self.session.execute(
            select(Account).where(Account.account_number == account_number)
        ).scalar_one_or_none()

    def resolve(self, account_ref: UUID | str) -> Account:
        """
        Resolve an account by UUID or account number.

        Raises:
            InvalidAccountError: No account matches ``account_ref``.
        """
        account: Account | None
        if isinstance(account_ref, UUID):
            account = self.session.get(Account, account_ref)
        else:
            account = self._find_by_number(str(account_ref))
        if account is None:
            raise InvalidAccountError(str(account_ref))
        return account

    def list_accounts(
        self,
        include_inactive: bool = False,
        account_type: AccountType | str | None = None,
    ) -> list[AccountInfo]:
        """Accounts sorted by account number."""
        query = select(Account)
        if not include_inactive:
            query = query.where(Account.is_active.is_(True))
        if account_type is not None:
            query = query.where(Account.account_type == _coerce_account_type(account_type).value)
        query = query.order_by(Account.account_number)
        return [AccountInfo.from_model(a) for a in self.session.execute(query).scalars()]

    def count_accounts(self) -> int:
        return self.session.execute(select(func.count(Account.id))).scalar_one()

    def has_postings(self, account_id: UUID) -> bool:
        """True once any journal line references the account."""
        return self.session.execute(
            select(exists().where(JournalLine.account_id == account_id))
        ).scalar_one()

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    @staticmethod
    def _validate_sub_type(
        account_type: AccountType,
        sub_type: AccountSubType | str | None,
    ) -> AccountSubType:
        if sub_type is None:
            return DEFAULT_SUB_TYPE[account_type]
        if not is_sub_type_allowed(account_type, sub_type):
            raise InvalidSubTypeError(
                account_type.value,
                str(getattr(sub_type, "value", sub_type)),
                tuple(s.value for s in ALLOWED_SUB_TYPES[account_type]),
            )
        return AccountSubType(sub_type)

    def _validate_parent(self, parent_id: UUID | None, account_id: UUID | None = None) -> None:
        if parent_id is None:
            return
        if account_id is not None and parent_id == account_id:
            raise InvalidAccountError(str(parent_id), "account cannot be its own parent")
        if self.session.get(Account, parent_id) is None:
            raise AccountNotFoundError(str(parent_id))

    def create_account(
        self,
        account_number: str,
        name: str,
        account_type: AccountType | str,
        actor_id: UUID,
        sub_type: AccountSubType | str | None = None,
        description: str | None = None,
        tax_code: str | None = None,
        parent_id: UUID | None = None,
        is_active: bool = True,
    ) -> AccountInfo:
        """
        Register a new account.

        Preconditions:
            - ``account_number`` and ``name`` are non-empty.

        Postconditions:
            - normal_balance is derived from ``account_type``.
            - ``sub_type`` defaults to the first-line classification for the
              type (e.g. Current Asset) when omitted.

        Raises:
            InvalidInputError: Empty number/name or unknown account type.
            DuplicateAccountNumberError: Number already registered.
            InvalidSubTypeError: Sub-type not allowed for the type.
            AccountNotFoundError: ``parent_id`` does not exist.
        """
        account_number = (account_number or "").strip()
        name = (name or "").strip()
        if not account_number:
            raise InvalidInputError("account_number", "is required")
        if not name:
            raise InvalidInputError("name", "is required")

        account_type = _coerce_account_type(account_type)
        resolved_sub_type = self._validate_sub_type(account_type, sub_type)

        if self._find_by_number(account_number) is not None:
            raise DuplicateAccountNumberError(account_number)
        self._validate_parent(parent_id)

        account = Account(
            account_number=account_number,
            name=name,
            sub_type=resolved_sub_type.value,
            description=description,
            tax_code=tax_code,
            parent_id=parent_id,
            is_active=is_active,
            created_by_id=actor_id,
        )
        account.assign_type(account_type)
        self.session.add(account)
        self.session.flush()

        logger.info(
            "account_created",
            extra={
                "account_id": str(account.id),
                "account_number": account_number,
                "account_type": account_type.value,
                "sub_type": resolved_sub_type.value,
                "normal_balance": account.normal_balance,
            },
        )
        return AccountInfo.from_model(account)

    def update_account(self, account_id: UUID, actor_id: UUID, **changes) -> AccountInfo:
        """
        Apply a partial update.

        Name, description, active flag, tax code, sub-type and parent may
        always change.  Type and number may change only while no journal
        line references the account; a type change re-derives the normal
        balance and re-validates the sub-type.

        Raises:
            AccountNotFoundError: Unknown ``account_id``.
            InvalidInputError: Unknown field name, blank number or unknown type.
            ImmutableFieldError: Structural change after posting.
            DuplicateAccountNumberError: New number already registered.
            InvalidSubTypeError: Sub-type not allowed for the (new) type.
        """
        unknown = set(changes) - _UPDATABLE_FIELDS
        if unknown:
            raise InvalidInputError(", ".join(sorted(unknown)), "field cannot be updated")

        account = self._load(account_id)

        if "account_number" in changes:
            changes["account_number"] = (changes["account_number"] or "").strip()
            if not changes["account_number"]:
                raise InvalidInputError("account_number", "is required")
        if "name" in changes:
            changes["name"] = (changes["name"] or "").strip()
            if not changes["name"]:
                raise InvalidInputError("name", "is required")
        if "account_type" in changes:
            changes["account_type"] = _coerce_account_type(changes["account_type"])

        structural = {
            f for f in _STRUCTURAL_FIELDS
            if f in changes and changes[f] != getattr(account, f)
        }
        if structural and self.has_postings(account_id):
            field = sorted(structural)[0]
            logger.warning(
                "account_structural_change_rejected",
                extra={"account_id": str(account_id), "field": field},
            )
            raise ImmutableFieldError(
                "account", field, "journal lines already reference this account"
            )

        if "account_number" in structural:
            new_number = changes["account_number"]
            if self._find_by_number(new_number) is not None:
                raise DuplicateAccountNumberError(new_number)
            account.account_number = new_number

        target_type = AccountType(changes.get("account_type", account.account_type))
        if "account_type" in structural or "sub_type" in changes:
            sub_type = changes.get("sub_type")
            if sub_type is None and is_sub_type_allowed(target_type, account.sub_type):
                sub_type = account.sub_type
            account.sub_type = self._validate_sub_type(target_type, sub_type).value
        if "account_type" in structural:
            account.assign_type(target_type)

        if "parent_id" in changes:
            self._validate_parent(changes["parent_id"], account.id)
            account.parent_id = changes["parent_id"]
        for simple in ("name", "description", "is_active", "tax_code"):
            if simple in changes:
                setattr(account, simple, changes[simple])

        account.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "account_updated",
            extra={
                "account_id": str(account_id),
                "fields": sorted(changes),
            },
        )
        return AccountInfo.from_model(account)

    def deactivate_account(self, account_id: UUID, actor_id: UUID) -> AccountInfo:
        """Deactivate; history keeps referencing the row."""
        return self.update_account(account_id, actor_id, is_active=False)

    def activate_account(self, account_id: UUID, actor_id: UUID) -> AccountInfo:
        return self.update_account(account_id, actor_id, is_active=True)

    def seed_default_chart(
        self,
        actor_id: UUID,
        template: tuple[ChartTemplateEntry, ...] = DEFAULT_CHART,
    ) -> SeedResult:
        """
        Insert the default chart when the registry is empty.

        Idempotent: a non-empty registry is left untouched and every
        template row is reported as skipped.
        """
        existing = self.count_accounts()
        if existing:
            logger.info(
                "chart_seed_skipped",
                extra={"existing_accounts": existing},
            )
            return SeedResult(created=0, skipped=len(template))

        for entry in template:
            account = Account(
                account_number=entry.account_number,
                name=entry.name,
                sub_type=entry.sub_type.value,
                description=entry.description or None,
                is_active=True,
                created_by_id=actor_id,
            )
            account.assign_type(entry.account_type)
            self.session.add(account)
        self.session.flush()

        logger.info("chart_seeded", extra={"accounts_created": len(template)})
        return SeedResult(created=len(template), skipped=0)

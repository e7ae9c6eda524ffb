"""
Ledger Store

The only place ledger state changes. Each operation takes the current
AppData and returns its successor; nothing is edited in place, so a
rejected call leaves the caller's state exactly as it was.

The module-level functions are the pure state transitions. LedgerStore
is the single owning context object that holds the current version for
callers that do not want to thread state themselves.
"""

from collections.abc import Mapping
from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

import structlog
from pydantic import ValidationError as PydanticValidationError

from lumina.ledger.balances import apply_transaction
from lumina.models.ledger import (
    DEFAULT_APP_DATA,
    AppData,
    LedgerSettings,
    RecurringFrequency,
    Transaction,
    TransactionDraft,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    utc_now,
)
from lumina.validation import (
    LedgerError,
    StateValidator,
    TransactionValidator,
    ValidationError,
    issues_from_pydantic,
    parse_draft,
)


logger = structlog.get_logger(__name__)


class StaleStateError(LedgerError):
    """The ledger moved on since the caller last read it."""

    def __init__(self, expected_version: int, actual_version: int):
        self.expected_version = expected_version
        self.actual_version = actual_version
        super().__init__(
            f"Ledger is at version {actual_version}, "
            f"caller expected version {expected_version}"
        )


def build_transaction(
    draft: TransactionDraft,
    now: Optional[datetime] = None,
) -> Transaction:
    """
    Turn a validated draft into a committed-shape Transaction.

    Assigns identity and timestamps, fills defaults and normalises the
    shape: transfers lose any category, other types lose any
    destination wallet, recurrence frequency only exists when recurring.
    """
    now = now or utc_now()
    is_transfer = draft.type == TransactionType.TRANSFER

    frequency = None
    if draft.is_recurring:
        frequency = draft.recurring_frequency or RecurringFrequency.MONTHLY

    return Transaction(
        id=str(uuid4()),
        amount=draft.amount,
        type=draft.type,
        category_id=None if is_transfer else draft.category_id,
        wallet_id=draft.wallet_id,
        to_wallet_id=draft.to_wallet_id if is_transfer else None,
        date=draft.date or now,
        note=draft.note or "",
        tag_ids=tuple(draft.tag_ids),
        is_recurring=draft.is_recurring,
        recurring_frequency=frequency,
        receipt_url=draft.receipt_url,
        created_at=now,
        updated_at=now,
    )


def commit(
    state: AppData,
    draft: Any,
    now: Optional[datetime] = None,
) -> tuple[Transaction, AppData]:
    """
    Validate a draft and append it to the ledger.

    Args:
        state: Current ledger
        draft: TransactionDraft or a mapping of draft fields
        now: Clock override for created_at/updated_at and the default date

    Returns:
        (transaction, next_state). The transaction is first in
        next_state.transactions and the wallets already reflect it.

    Raises:
        ValidationError: Draft rejected; state is untouched
    """
    draft = parse_draft(draft)

    result = TransactionValidator().validate(draft, state)
    if result.has_errors:
        raise ValidationError.from_result(result)
    for issue in result.warnings:
        logger.warning(
            "transaction_draft_warning",
            field=issue.field,
            issue_type=issue.issue_type,
            message=issue.message,
        )

    transaction = build_transaction(draft, now=now)
    next_state = state.model_copy(update={
        "wallets": apply_transaction(state.wallets, transaction),
        "transactions": (transaction,) + state.transactions,
        "version": state.version + 1,
    })
    return transaction, next_state


def replace_all(
    candidate: Any,
    current: Optional[AppData] = None,
) -> AppData:
    """
    Replace the whole aggregate (the import path).

    The candidate is taken verbatim: balances are NOT re-derived from
    its transactions. Use balances.find_balance_drift to audit it.

    Raises:
        ValidationError: Candidate is not a valid AppData; every
            missing or malformed field is listed in the error
    """
    result, state = StateValidator().validate(candidate)
    if state is None or result.has_errors:
        raise ValidationError.from_result(result)
    for issue in result.warnings:
        logger.warning(
            "import_warning",
            field=issue.field,
            issue_type=issue.issue_type,
            message=issue.message,
        )
    if current is not None:
        state = state.model_copy(update={
            "version": max(state.version, current.version + 1),
        })
    return state


def reset(current: Optional[AppData] = None) -> AppData:
    """Return the default aggregate, versioned after `current`."""
    if current is None:
        return DEFAULT_APP_DATA
    return DEFAULT_APP_DATA.model_copy(update={"version": current.version + 1})


def update_settings(state: AppData, **changes: Any) -> AppData:
    """
    Copy-on-write settings update.

    Raises:
        ValidationError: Unknown setting or invalid value
    """
    unknown = sorted(set(changes) - set(LedgerSettings.model_fields))
    if unknown:
        issues = [
            ValidationIssue(
                field=name,
                issue_type="unknown_setting",
                message=f"'{name}' is not a setting",
                severity="error",
            )
            for name in unknown
        ]
        raise ValidationError.from_result(ValidationResult(subject="settings", issues=issues))

    try:
        settings = LedgerSettings.model_validate({
            **state.settings.model_dump(),
            **changes,
        })
    except PydanticValidationError as e:
        raise ValidationError.from_result(
            ValidationResult(subject="settings", issues=issues_from_pydantic(e))
        ) from e

    return state.model_copy(update={
        "settings": settings,
        "version": state.version + 1,
    })


class LedgerStore:
    """
    Owns the current AppData.

    Single writer: every mutation goes through one of the methods below,
    each of which swaps in a complete successor state or raises without
    changing anything.
    """

    def __init__(self, state: Optional[AppData] = None):
        self._state = state if state is not None else DEFAULT_APP_DATA

    @property
    def state(self) -> AppData:
        """The last committed state."""
        return self._state

    @property
    def version(self) -> int:
        return self._state.version

    def _check_version(self, expected_version: Optional[int]) -> None:
        if expected_version is not None and expected_version != self._state.version:
            raise StaleStateError(expected_version, self._state.version)

    def commit(
        self,
        draft: Any,
        expected_version: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> tuple[Transaction, AppData]:
        """
        Commit a draft.

        Args:
            draft: TransactionDraft or mapping
            expected_version: When given, the commit only applies if the
                ledger is still at this version (compare-and-swap)
        """
        self._check_version(expected_version)
        transaction, next_state = commit(self._state, draft, now=now)
        self._state = next_state
        return transaction, next_state

    def replace_all(
        self,
        candidate: Any,
        expected_version: Optional[int] = None,
    ) -> AppData:
        self._check_version(expected_version)
        self._state = replace_all(candidate, current=self._state)
        return self._state

    def reset(self) -> AppData:
        self._state = reset(self._state)
        return self._state

    def update_settings(self, **changes: Any) -> AppData:
        self._state = update_settings(self._state, **changes)
        return self._state

    def load(self, state: Mapping | AppData) -> AppData:
        """Install a state read from durable storage at startup."""
        self._state = StateValidator().parse(state)
        return self._state

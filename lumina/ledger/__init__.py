"""Ledger core: state transitions and balance arithmetic."""

from lumina.ledger.balances import (
    apply_transaction,
    balance_deltas,
    find_balance_drift,
    recompute_balances,
)
from lumina.ledger.drafts import merge_receipt_into_draft, resolve_category
from lumina.ledger.store import (
    LedgerStore,
    StaleStateError,
    build_transaction,
    commit,
    replace_all,
    reset,
    update_settings,
)

__all__ = [
    # Balances
    "apply_transaction",
    "balance_deltas",
    "find_balance_drift",
    "recompute_balances",
    # Drafts
    "merge_receipt_into_draft",
    "resolve_category",
    # Store
    "LedgerStore",
    "StaleStateError",
    "build_transaction",
    "commit",
    "replace_all",
    "reset",
    "update_settings",
]

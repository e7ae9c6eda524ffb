"""
Balance Updater

Pure functions over wallets and transactions. Nothing here touches the
store, storage or logging.

Sign convention:
- INCOME:   +amount to wallet_id
- EXPENSE:  -amount from wallet_id (no floor, overdraft is allowed)
- TRANSFER: -amount from wallet_id, +amount to to_wallet_id

A transfer never changes the sum of all balances.
"""

from collections.abc import Iterable, Mapping
from decimal import Decimal

from lumina.models.ledger import Transaction, TransactionType, Wallet


def balance_deltas(transaction: Transaction) -> dict[str, Decimal]:
    """Signed change each referenced wallet receives from one transaction."""
    amount = transaction.amount
    if transaction.type == TransactionType.INCOME:
        return {transaction.wallet_id: amount}
    if transaction.type == TransactionType.EXPENSE:
        return {transaction.wallet_id: -amount}
    return {
        transaction.wallet_id: -amount,
        transaction.to_wallet_id: amount,
    }


def apply_transaction(
    wallets: Iterable[Wallet],
    transaction: Transaction,
) -> tuple[Wallet, ...]:
    """
    Return the wallets as they are after the transaction.

    Wallets the transaction does not reference are returned as the
    same objects.
    """
    deltas = balance_deltas(transaction)
    updated = []
    for wallet in wallets:
        delta = deltas.get(wallet.id)
        if delta is None:
            updated.append(wallet)
        else:
            updated.append(wallet.model_copy(update={"balance": wallet.balance + delta}))
    return tuple(updated)


def recompute_balances(
    transactions: Iterable[Transaction],
    initial_balances: Mapping[str, Decimal],
) -> dict[str, Decimal]:
    """
    Replay the transaction log on top of opening balances.

    The incremental balances kept on wallets can drift from the log if
    edits or deletes are ever introduced; this replay is the reference
    they are audited against. Order does not matter, addition commutes.
    Wallets that only appear in transactions start from zero.
    """
    balances = {wallet_id: Decimal(value) for wallet_id, value in initial_balances.items()}
    for transaction in transactions:
        for wallet_id, delta in balance_deltas(transaction).items():
            balances[wallet_id] = balances.get(wallet_id, Decimal("0")) + delta
    return balances


def find_balance_drift(
    wallets: Iterable[Wallet],
    transactions: Iterable[Transaction],
    initial_balances: Mapping[str, Decimal],
) -> dict[str, tuple[Decimal, Decimal]]:
    """
    Compare stored balances with a full replay.

    Returns:
        {wallet_id: (stored_balance, expected_balance)} for every wallet
        that disagrees. Empty when the ledger is consistent.
    """
    expected = recompute_balances(transactions, initial_balances)
    drift = {}
    for wallet in wallets:
        should_be = expected.get(wallet.id, Decimal("0"))
        if wallet.balance != should_be:
            drift[wallet.id] = (wallet.balance, should_be)
    return drift

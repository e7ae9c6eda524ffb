"""
Shared fixtures.

Ledger fixtures use naive datetimes for transaction dates, which the
aggregation treats as local time, so month and day bucketing does not
depend on the machine's timezone.
"""

from datetime import datetime, timezone
from decimal import Decimal
from types import SimpleNamespace
from uuid import uuid4

import pytest

from lumina.ledger import LedgerStore
from lumina.models import (
    AppData,
    Category,
    Tag,
    Transaction,
    TransactionType,
    Wallet,
    WalletKind,
)


NOW = datetime(2024, 5, 20, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def state():
    """Two wallets (w1=100, w2=50) and a few categories."""
    return AppData(
        wallets=(
            Wallet(id="w1", name="Cash", kind=WalletKind.CASH, balance=Decimal("100.00")),
            Wallet(id="w2", name="Checking", kind=WalletKind.BANK, balance=Decimal("50.00")),
        ),
        categories=(
            Category(id="c1", name="Food & Dining", budget_limit=Decimal("100")),
            Category(id="c2", name="Transportation", budget_limit=Decimal("0")),
            Category(id="c3", name="Salary"),
        ),
        tags=(
            Tag(id="tg1", name="Personal"),
        ),
        transactions=(),
    )


@pytest.fixture
def store(state):
    return LedgerStore(state)


@pytest.fixture
def make_transaction():
    """Factory for committed-shape transactions with sensible defaults."""
    def _make(**overrides) -> Transaction:
        fields = {
            "id": str(uuid4()),
            "amount": Decimal("10.00"),
            "type": TransactionType.EXPENSE,
            "category_id": "c1",
            "wallet_id": "w1",
            "date": datetime(2024, 5, 10, 12, 0),
            "created_at": NOW,
            "updated_at": NOW,
        }
        fields.update(overrides)
        return Transaction(**fields)
    return _make


class GeminiStub:
    """
    Stand-in for genai.GenerativeModel.

    Returns `text` for every call, or raises `error` when given.
    Each call's contents are recorded in `calls`.
    """

    def __init__(self, text: str = "", error: Exception = None):
        self.text = text
        self.error = error
        self.calls = []

    async def generate_content_async(self, contents):
        self.calls.append(contents)
        if self.error is not None:
            raise self.error
        return SimpleNamespace(text=self.text)


@pytest.fixture
def make_gemini():
    """Factory for stub Gemini models."""
    return GeminiStub

"""
Core Data Models for the Lumina Ledger

These models define the strict schemas for all data flowing through the system.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and backups
4. Stay immutable once committed

DESIGN DECISION: Committed entities are frozen Pydantic v2 models and the
aggregate holds tuples. A state transition never edits a value in place;
it builds a successor AppData.

JSON field names are camelCase so that backups written by the original
Lumina web app import without conversion.
"""

from datetime import date as date_type
from datetime import datetime, time, timezone
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionType(str, Enum):
    """Direction of money movement."""
    INCOME = "INCOME"
    EXPENSE = "EXPENSE"
    TRANSFER = "TRANSFER"


class WalletKind(str, Enum):
    """Kind of wallet. Purely descriptive, no behavior depends on it."""
    CASH = "CASH"
    BANK = "BANK"
    CREDIT = "CREDIT"
    SAVINGS = "SAVINGS"
    DIGITAL = "DIGITAL"


class Currency(str, Enum):
    """
    Currency tag stored on a wallet.

    DESIGN DECISION: No conversion exists. Sums across wallets with
    different currencies are approximate by definition.
    """
    USD = "USD"
    EUR = "EUR"
    GBP = "GBP"
    JPY = "JPY"
    INR = "INR"


class RecurringFrequency(str, Enum):
    """Recurrence metadata. Nothing materializes future occurrences."""
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


class Theme(str, Enum):
    LIGHT = "light"
    DARK = "dark"


def utc_now() -> datetime:
    """Timezone-aware current time, used for every core timestamp."""
    return datetime.now(timezone.utc)


def _blank_to_none(value):
    if isinstance(value, str) and not value.strip():
        return None
    return value


class LedgerModel(BaseModel):
    """Base for committed ledger entities: frozen, camelCase on the wire."""

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )


# =============================================================================
# LEDGER ENTITIES
# =============================================================================

class Wallet(LedgerModel):
    """
    A place money lives (cash, bank account, card...).

    The balance is a stored running total, updated incrementally on
    each commit rather than recomputed from the log on read.
    """

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    kind: WalletKind = Field(..., alias="type")
    balance: Decimal = Field(
        default=Decimal("0"),
        description="Running balance, may be negative (overdraft)"
    )
    currency: Currency = Currency.USD
    color_tag: str = Field(default="#3b82f6", alias="color")


class Category(LedgerModel):
    """
    Spending/income category.

    budget_limit is a monthly ceiling read by the budget aggregation only.
    It is never enforced at commit time.
    """

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    icon: str = Field(default="tag")
    color_tag: str = Field(default="#94a3b8", alias="color")
    budget_limit: Optional[Decimal] = Field(
        default=None,
        ge=0,
        description="Monthly budget ceiling"
    )


class Tag(LedgerModel):
    """Free-form label attached to transactions."""

    id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=50)
    color_tag: str = Field(default="#94a3b8", alias="color")


class Transaction(LedgerModel):
    """
    A committed transaction.

    CRITICAL: Transactions are append-only. The core creates them
    exclusively through commit and never edits or removes them.
    """

    id: str = Field(..., min_length=1)
    amount: Decimal = Field(..., ge=0)
    type: TransactionType
    category_id: Optional[str] = None
    wallet_id: str = Field(..., min_length=1)
    to_wallet_id: Optional[str] = None
    date: datetime
    note: str = ""
    tag_ids: tuple[str, ...] = Field(default=(), alias="tags")
    is_recurring: bool = False
    recurring_frequency: Optional[RecurringFrequency] = None
    receipt_url: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @field_validator('category_id', 'to_wallet_id', 'recurring_frequency', mode='before')
    @classmethod
    def empty_reference_is_absent(cls, v):
        """The web app stored '' for "no category" on transfers."""
        return _blank_to_none(v)

    @field_validator('note', mode='before')
    @classmethod
    def missing_note_is_empty(cls, v):
        return "" if v is None else v

    @model_validator(mode='after')
    def validate_shape(self) -> 'Transaction':
        """Transfers move between two wallets and carry no category."""
        if self.type == TransactionType.TRANSFER:
            if self.category_id is not None:
                raise ValueError("Transfers cannot have a category")
            if self.to_wallet_id is None:
                raise ValueError("Transfers require a destination wallet")
            if self.to_wallet_id == self.wallet_id:
                raise ValueError("Transfer source and destination must differ")
        elif self.to_wallet_id is not None:
            raise ValueError("Only transfers can have a destination wallet")
        return self

    @property
    def is_transfer(self) -> bool:
        return self.type == TransactionType.TRANSFER


class LedgerSettings(LedgerModel):
    """
    User preferences.

    Mutated by explicit user action only and never part of a
    balance invariant.
    """

    base_currency: Currency = Currency.USD
    theme: Theme = Theme.LIGHT
    notifications_enabled: bool = Field(default=True, alias="enableNotifications")
    last_backup_date: Optional[datetime] = None


class AppData(LedgerModel):
    """
    The root aggregate.

    Owned exclusively by the ledger store. `version` increases on every
    state transition so writers can detect lost updates. Backups written
    before versioning existed load as version 0.
    """

    wallets: tuple[Wallet, ...]
    categories: tuple[Category, ...] = ()
    tags: tuple[Tag, ...] = ()
    transactions: tuple[Transaction, ...]
    settings: LedgerSettings = Field(default_factory=LedgerSettings)
    version: int = Field(default=0, ge=0)

    @model_validator(mode='after')
    def validate_unique_ids(self) -> 'AppData':
        for label, items in (
            ("wallet", self.wallets),
            ("category", self.categories),
            ("tag", self.tags),
            ("transaction", self.transactions),
        ):
            seen = set()
            for item in items:
                if item.id in seen:
                    raise ValueError(f"Duplicate {label} id: {item.id}")
                seen.add(item.id)
        return self

    def wallet(self, wallet_id: Optional[str]) -> Optional[Wallet]:
        """Look up a wallet by id."""
        return next((w for w in self.wallets if w.id == wallet_id), None)

    def category(self, category_id: Optional[str]) -> Optional[Category]:
        """Look up a category by id."""
        return next((c for c in self.categories if c.id == category_id), None)


# =============================================================================
# DRAFTS - untrusted input
# =============================================================================

class TransactionDraft(BaseModel):
    """
    A caller-supplied, not-yet-validated transaction payload.

    CRITICAL: This is PROPOSED data. It comes from the entry form or from
    the receipt scanner and is only trusted after commit validates it.
    Every field is optional so that partial input can be represented.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        str_strip_whitespace=True,
    )

    amount: Optional[Decimal] = None
    type: TransactionType = TransactionType.EXPENSE
    category_id: Optional[str] = None
    wallet_id: Optional[str] = None
    to_wallet_id: Optional[str] = None
    date: Optional[datetime] = None
    note: Optional[str] = None
    tag_ids: tuple[str, ...] = Field(default=(), alias="tags")
    is_recurring: bool = False
    recurring_frequency: Optional[RecurringFrequency] = None
    receipt_url: Optional[str] = None

    @field_validator(
        'category_id', 'wallet_id', 'to_wallet_id', 'recurring_frequency',
        mode='before',
    )
    @classmethod
    def empty_reference_is_absent(cls, v):
        return _blank_to_none(v)


class ReceiptAnalysis(BaseModel):
    """
    What the receipt scanner thinks it saw.

    CRITICAL: This is untrusted collaborator output. Every field may be
    absent, and unusable values are dropped rather than guessed at.
    It only ever reaches the ledger by being merged into a draft.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    total: Optional[Decimal] = None
    date: Optional[datetime] = None
    merchant: Optional[str] = None
    category: Optional[str] = None
    summary: Optional[str] = None
    items: list[str] = Field(default_factory=list)

    @field_validator('total', mode='before')
    @classmethod
    def safe_total(cls, v):
        if v is None or isinstance(v, bool):
            return None
        try:
            amount = Decimal(str(v).strip()).quantize(Decimal("0.01"))
        except (InvalidOperation, ValueError):
            return None
        if not amount.is_finite() or amount <= 0:
            return None
        return amount

    @field_validator('date', mode='before')
    @classmethod
    def safe_date(cls, v):
        if v is None or isinstance(v, datetime):
            return v
        if isinstance(v, date_type):
            return datetime.combine(v, time())
        if isinstance(v, str):
            text = v.strip()
            try:
                return datetime.fromisoformat(text.replace("Z", "+00:00"))
            except ValueError:
                pass
            for fmt in ("%Y-%m-%d", "%d-%m-%Y", "%d/%m/%Y", "%Y/%m/%d"):
                try:
                    return datetime.strptime(text, fmt)
                except ValueError:
                    continue
        return None

    @field_validator('merchant', 'category', 'summary', mode='before')
    @classmethod
    def blank_text_is_absent(cls, v):
        if v is not None and not isinstance(v, str):
            v = str(v)
        return _blank_to_none(v)

    @field_validator('items', mode='before')
    @classmethod
    def safe_items(cls, v):
        if not isinstance(v, list):
            return []
        return [str(item) for item in v if item is not None]

    def fields_found(self) -> list[str]:
        """Names of the fields the scanner actually returned."""
        return [
            name for name in ("total", "date", "merchant", "category", "summary")
            if getattr(self, name) is not None
        ]


# =============================================================================
# VALIDATION MODELS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single validation issue found."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value', 'unknown_reference')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        ...,
        pattern="^(error|warning|info)$",
        description="Issue severity"
    )
    suggested_fix: Optional[str] = Field(
        default=None,
        description="Suggested fix if available"
    )


class ValidationResult(BaseModel):
    """Outcome of validating a draft or an imported state."""

    subject: str = Field(
        ...,
        description="What was validated (e.g. 'transaction_draft', 'app_data')"
    )
    validated_at: datetime = Field(default_factory=utc_now)
    issues: list[ValidationIssue] = Field(default_factory=list)

    @property
    def is_valid(self) -> bool:
        return not self.has_errors

    @property
    def has_errors(self) -> bool:
        """Check if there are any error-level issues."""
        return any(issue.severity == "error" for issue in self.issues)

    @property
    def error_count(self) -> int:
        """Count error-level issues."""
        return sum(1 for issue in self.issues if issue.severity == "error")

    @property
    def errors(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "error"]

    @property
    def warnings(self) -> list[ValidationIssue]:
        return [issue for issue in self.issues if issue.severity == "warning"]


# =============================================================================
# SEED DATA
# =============================================================================

DEFAULT_APP_DATA = AppData(
    settings=LedgerSettings(
        base_currency=Currency.USD,
        theme=Theme.LIGHT,
        notifications_enabled=True,
    ),
    wallets=(
        Wallet(id="w1", name="Wallet", kind=WalletKind.CASH,
               balance=Decimal("50.00"), color_tag="#3b82f6"),
        Wallet(id="w2", name="Main Checking", kind=WalletKind.BANK,
               balance=Decimal("2450.00"), color_tag="#10b981"),
        Wallet(id="w3", name="Savings", kind=WalletKind.SAVINGS,
               balance=Decimal("10000.00"), color_tag="#8b5cf6"),
    ),
    categories=(
        Category(id="c1", name="Food & Dining", icon="utensils",
                 color_tag="#ef4444", budget_limit=Decimal("600")),
        Category(id="c2", name="Transportation", icon="car",
                 color_tag="#f59e0b", budget_limit=Decimal("300")),
        Category(id="c3", name="Shopping", icon="shopping-bag",
                 color_tag="#8b5cf6", budget_limit=Decimal("400")),
        Category(id="c4", name="Entertainment", icon="film",
                 color_tag="#ec4899", budget_limit=Decimal("200")),
        Category(id="c5", name="Housing", icon="home",
                 color_tag="#3b82f6", budget_limit=Decimal("1500")),
        Category(id="c6", name="Salary", icon="briefcase", color_tag="#10b981"),
        Category(id="c7", name="Investments", icon="trending-up", color_tag="#06b6d4"),
        Category(id="c8", name="Health", icon="heart",
                 color_tag="#ef4444", budget_limit=Decimal("150")),
        Category(id="c9", name="Utilities", icon="zap",
                 color_tag="#fbbf24", budget_limit=Decimal("250")),
    ),
    tags=(
        Tag(id="tg1", name="Personal", color_tag="#94a3b8"),
        Tag(id="tg2", name="Business", color_tag="#3b82f6"),
        Tag(id="tg3", name="Vacation", color_tag="#f59e0b"),
    ),
    transactions=(),
)

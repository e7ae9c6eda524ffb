"""
Data Models Package

This package contains all Pydantic models used in the Lumina ledger.
All data flowing through the system must conform to these schemas.
"""

from lumina.models.ledger import (
    DEFAULT_APP_DATA,
    AppData,
    Category,
    Currency,
    LedgerSettings,
    ReceiptAnalysis,
    RecurringFrequency,
    Tag,
    Theme,
    Transaction,
    TransactionDraft,
    TransactionType,
    ValidationIssue,
    ValidationResult,
    Wallet,
    WalletKind,
)
from lumina.models.reports import (
    BudgetStatus,
    CategoryTotal,
    DailyCashFlow,
    MonthlySummary,
)
from lumina.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "DEFAULT_APP_DATA",
    "AppData",
    "Category",
    "Currency",
    "LedgerSettings",
    "ReceiptAnalysis",
    "RecurringFrequency",
    "Tag",
    "Theme",
    "Transaction",
    "TransactionDraft",
    "TransactionType",
    "ValidationIssue",
    "ValidationResult",
    "Wallet",
    "WalletKind",
    # Report models
    "BudgetStatus",
    "CategoryTotal",
    "DailyCashFlow",
    "MonthlySummary",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]

"""
Ledger Validation

DESIGN DECISION: Validation happens in two distinct stages:

STAGE 1 - SHAPE VALIDATION:
- Required field presence
- Amount is a positive, finite number
- Transfer/expense shape rules
- This catches malformed drafts regardless of ledger contents

STAGE 2 - REFERENCE VALIDATION:
- Wallets referenced by the draft exist
- Category and tags exist (warnings only)
- This needs the current ledger state

Both stages always run so the caller sees every problem at once,
not just the first.

Imports go through the StateValidator, which reports every missing or
malformed field of the candidate aggregate instead of a yes/no answer.

IMPORTANT: Validation NEVER silently fixes issues.
It reports them and the caller decides.
"""

from collections.abc import Mapping
from typing import Any, Optional

from pydantic import ValidationError as PydanticValidationError

from lumina.models.ledger import (
    AppData,
    TransactionDraft,
    TransactionType,
    ValidationIssue,
    ValidationResult,
)


class LedgerError(Exception):
    """Base exception for ledger operations."""
    pass


class ValidationError(LedgerError):
    """
    A draft or an imported state was rejected.

    Raised before any state change, so the ledger is untouched.
    """

    def __init__(self, message: str, issues: Optional[list[ValidationIssue]] = None):
        self.issues = issues or []
        super().__init__(message)

    @classmethod
    def from_result(cls, result: ValidationResult) -> "ValidationError":
        errors = result.errors
        summary = "; ".join(f"{issue.field}: {issue.message}" for issue in errors)
        return cls(
            f"Invalid {result.subject} ({len(errors)} errors): {summary}",
            issues=list(result.issues),
        )

    def issue_dicts(self) -> list[dict]:
        return [
            {"field": i.field, "type": i.issue_type, "message": i.message}
            for i in self.issues
        ]


def issues_from_pydantic(exc: PydanticValidationError) -> list[ValidationIssue]:
    """Translate a pydantic error report into our issue list, one per error."""
    issues = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error.get("loc", ())) or "(root)"
        issues.append(ValidationIssue(
            field=location,
            issue_type=error.get("type", "invalid"),
            message=error.get("msg", "Invalid value"),
            severity="error",
        ))
    return issues


def parse_draft(payload: Any) -> TransactionDraft:
    """
    Build a draft from caller input.

    Raises ValidationError when the payload cannot even be parsed
    (e.g. a non-numeric amount).
    """
    if isinstance(payload, TransactionDraft):
        return payload
    try:
        return TransactionDraft.model_validate(payload)
    except PydanticValidationError as e:
        issues = issues_from_pydantic(e)
        raise ValidationError.from_result(
            ValidationResult(subject="transaction_draft", issues=issues)
        ) from e


class TransactionValidator:
    """
    Validates transaction drafts against the current ledger.

    Stage 1: Shape validation (no state needed)
    Stage 2: Reference validation (needs the ledger)
    """

    def _validate_shape(
        self,
        draft: TransactionDraft,
    ) -> list[ValidationIssue]:
        """
        Stage 1: Shape validation.

        Checks:
        - Amount presence and positivity
        - Source wallet presence
        - Category for expenses
        - Destination wallet for transfers
        """
        issues = []

        if draft.amount is None:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="missing",
                message="Amount is required",
                severity="error",
                suggested_fix="Enter the amount of the transaction",
            ))
        elif not draft.amount.is_finite():
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message=f"Amount must be a finite number, got {draft.amount}",
                severity="error",
            ))
        elif draft.amount <= 0:
            issues.append(ValidationIssue(
                field="amount",
                issue_type="invalid_value",
                message="Amount must be greater than zero",
                severity="error",
                suggested_fix="Use the transaction type to express direction, not the sign",
            ))

        if draft.wallet_id is None:
            issues.append(ValidationIssue(
                field="wallet_id",
                issue_type="missing",
                message="A wallet is required",
                severity="error",
                suggested_fix="Select the wallet this transaction belongs to",
            ))

        if draft.type == TransactionType.EXPENSE and draft.category_id is None:
            issues.append(ValidationIssue(
                field="category_id",
                issue_type="missing",
                message="Expenses require a category",
                severity="error",
                suggested_fix="Select a category for this expense",
            ))

        if draft.type == TransactionType.TRANSFER:
            if draft.to_wallet_id is None:
                issues.append(ValidationIssue(
                    field="to_wallet_id",
                    issue_type="missing",
                    message="Transfers require a destination wallet",
                    severity="error",
                    suggested_fix="Select the wallet receiving the money",
                ))
            elif draft.to_wallet_id == draft.wallet_id:
                issues.append(ValidationIssue(
                    field="to_wallet_id",
                    issue_type="invalid_value",
                    message="Transfer source and destination must be different wallets",
                    severity="error",
                ))

        return issues

    def _validate_references(
        self,
        draft: TransactionDraft,
        state: AppData,
    ) -> list[ValidationIssue]:
        """
        Stage 2: Reference validation.

        Unknown wallets are errors. Unknown categories and tags are
        warnings: aggregation already tolerates unresolvable ids.
        """
        issues = []

        if draft.wallet_id is not None and state.wallet(draft.wallet_id) is None:
            issues.append(ValidationIssue(
                field="wallet_id",
                issue_type="unknown_reference",
                message=f"Wallet '{draft.wallet_id}' does not exist",
                severity="error",
            ))

        if (
            draft.type == TransactionType.TRANSFER
            and draft.to_wallet_id is not None
            and draft.to_wallet_id != draft.wallet_id
            and state.wallet(draft.to_wallet_id) is None
        ):
            issues.append(ValidationIssue(
                field="to_wallet_id",
                issue_type="unknown_reference",
                message=f"Wallet '{draft.to_wallet_id}' does not exist",
                severity="error",
            ))

        if (
            draft.type != TransactionType.TRANSFER
            and draft.category_id is not None
            and state.category(draft.category_id) is None
        ):
            issues.append(ValidationIssue(
                field="category_id",
                issue_type="unknown_reference",
                message=f"Category '{draft.category_id}' does not exist",
                severity="warning",
                suggested_fix="The transaction will not appear in category reports",
            ))

        known_tags = {tag.id for tag in state.tags}
        unknown_tags = [tag_id for tag_id in draft.tag_ids if tag_id not in known_tags]
        if unknown_tags:
            issues.append(ValidationIssue(
                field="tag_ids",
                issue_type="unknown_reference",
                message=f"Unknown tags: {', '.join(unknown_tags)}",
                severity="warning",
            ))

        return issues

    def validate(
        self,
        draft: TransactionDraft,
        state: AppData,
    ) -> ValidationResult:
        """
        Run both validation stages.

        Args:
            draft: The draft to validate
            state: The ledger the draft would be committed to

        Returns:
            ValidationResult with all issues found
        """
        issues = self._validate_shape(draft)
        issues.extend(self._validate_references(draft, state))
        return ValidationResult(subject="transaction_draft", issues=issues)

    def get_user_friendly_summary(
        self,
        result: ValidationResult,
    ) -> str:
        """
        Generate a user-friendly summary of validation results.

        This is what the entry form shows next to the Save button.
        """
        if result.is_valid and not result.warnings:
            return "✅ Ready to save."

        lines = []

        if result.has_errors:
            lines.append("❌ This transaction can't be saved yet:")
            for issue in result.errors:
                lines.append(f"   • {issue.message}")
                if issue.suggested_fix:
                    lines.append(f"     💡 {issue.suggested_fix}")

        if result.warnings:
            if lines:
                lines.append("")
            lines.append("⚠️ Please verify the following:")
            for issue in result.warnings:
                lines.append(f"   • {issue.message}")

        return "\n".join(lines)


class StateValidator:
    """
    Validates a candidate AppData (the import path).

    The two collections every ledger needs are checked explicitly so their
    absence gets a clear message; everything else is checked by the
    AppData schema, with every error reported.
    """

    REQUIRED_COLLECTIONS = ("wallets", "transactions")

    def validate(self, payload: Any) -> tuple[ValidationResult, Optional[AppData]]:
        """
        Validate and parse a candidate state.

        Returns:
            (result, state) where state is None when the result has errors
        """
        if isinstance(payload, AppData):
            return ValidationResult(
                subject="app_data",
                issues=self._reference_warnings(payload),
            ), payload

        if not isinstance(payload, Mapping):
            issue = ValidationIssue(
                field="(root)",
                issue_type="invalid_type",
                message=f"Expected a JSON object, got {type(payload).__name__}",
                severity="error",
            )
            return ValidationResult(subject="app_data", issues=[issue]), None

        issues = []
        missing = [name for name in self.REQUIRED_COLLECTIONS if name not in payload]
        for name in missing:
            issues.append(ValidationIssue(
                field=name,
                issue_type="missing",
                message=f"Required collection '{name}' is missing",
                severity="error",
                suggested_fix="Make sure the file is a Lumina backup",
            ))

        try:
            state = AppData.model_validate(payload)
        except PydanticValidationError as e:
            for issue in issues_from_pydantic(e):
                if issue.issue_type == "missing" and issue.field in missing:
                    continue
                issues.append(issue)
            return ValidationResult(subject="app_data", issues=issues), None

        issues.extend(self._reference_warnings(state))
        return ValidationResult(subject="app_data", issues=issues), state

    def _reference_warnings(self, state: AppData) -> list[ValidationIssue]:
        """Transactions pointing at wallets the candidate does not have."""
        known = {wallet.id for wallet in state.wallets}
        dangling = set()
        for transaction in state.transactions:
            for wallet_id in (transaction.wallet_id, transaction.to_wallet_id):
                if wallet_id is not None and wallet_id not in known:
                    dangling.add(wallet_id)

        if not dangling:
            return []
        return [ValidationIssue(
            field="transactions",
            issue_type="unknown_reference",
            message=f"Transactions reference unknown wallets: {', '.join(sorted(dangling))}",
            severity="warning",
            suggested_fix="Balances are kept as imported; run a drift audit to check them",
        )]

    def parse(self, payload: Any) -> AppData:
        """Validate a candidate state, raising ValidationError on any error."""
        result, state = self.validate(payload)
        if state is None or result.has_errors:
            raise ValidationError.from_result(result)
        return state

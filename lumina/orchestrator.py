"""
Main Orchestrator for Lumina

This module ties together all the components and defines the
end-to-end flows for:
1. Ledger (draft → validate → commit → persist)
2. Import / export (document → validate → confirm → replace → persist)
3. Receipt scan (image → analysis → merged draft, never committed)
4. Insights (recent transactions → advice text)

DESIGN DECISION: The orchestrator enforces the boundaries:
- Nothing an AI returns reaches the ledger without going through a draft
- An import never replaces data without explicit confirmation
- Every step is audited

The ledger core is synchronous and pure. Everything that waits on the
outside world lives here and is async.
"""

import asyncio
import inspect
from collections.abc import Awaitable, Callable, Iterable
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Optional, Union
from uuid import UUID

import structlog
from pydantic import ValidationError as PydanticValidationError

from lumina.agents import CollaboratorError, InsightAgent, ReceiptAgent
from lumina.audit import AuditLogger, create_correlation_id
from lumina.config import get_settings
from lumina.ledger import LedgerStore, StaleStateError, merge_receipt_into_draft
from lumina.models.ledger import (
    AppData,
    ReceiptAnalysis,
    Transaction,
    TransactionDraft,
    ValidationIssue,
    ValidationResult,
    utc_now,
)
from lumina.models.reports import MonthlySummary
from lumina.queries import (
    BUDGET_WARNING_PERCENT,
    TOP_CATEGORIES_LIMIT,
    summarize_month,
)
from lumina.services.storage import (
    FormatError,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    JsonFileAuditStorage,
    JsonFileLedgerStorage,
    LedgerStorageInterface,
    StorageError,
    backup_filename,
    deserialize,
    export_transactions_csv,
    serialize,
)
from lumina.validation import ValidationError, parse_draft


logger = structlog.get_logger(__name__)

ConfirmCallback = Callable[[AppData], Union[bool, Awaitable[bool]]]

INSIGHTS_FALLBACK = "Could not generate insights at this time."
INSIGHTS_UNAVAILABLE = "AI services unavailable. Please check your API key."


class LedgerFlow:
    """
    Orchestrates every change to the ledger.

    Flow for a write:
    1. Store → validate and swap in the successor state (all-or-nothing)
    2. Audit → record what changed
    3. Persist → write the LATEST state to durable storage

    Writes are serialised by a lock. Each write persists whatever the
    store holds when the lock is acquired, so a slow save of an older
    version can never land after a newer one.
    """

    def __init__(
        self,
        store: Optional[LedgerStore] = None,
        storage: Optional[LedgerStorageInterface] = None,
        audit_logger: Optional[AuditLogger] = None,
        top_categories_limit: int = TOP_CATEGORIES_LIMIT,
        budget_warning_percent: Decimal = BUDGET_WARNING_PERCENT,
    ):
        self._store = store or LedgerStore()
        self._storage = storage
        self._audit_logger = audit_logger or AuditLogger()
        self._top_categories_limit = top_categories_limit
        self._budget_warning_percent = Decimal(budget_warning_percent)
        self._write_lock = asyncio.Lock()
        self._saved_version: Optional[int] = None

    @property
    def store(self) -> LedgerStore:
        return self._store

    @property
    def state(self) -> AppData:
        """Last committed state. Readable while a save is in flight."""
        return self._store.state

    async def startup(self, correlation_id: Optional[UUID] = None) -> AppData:
        """
        Load the persisted ledger, or start from the default data.

        Raises:
            FormatError: The stored ledger is unreadable. Nothing is
                overwritten; the caller decides what to do.
        """
        correlation_id = correlation_id or create_correlation_id()

        if self._storage is None:
            await self._audit_logger.log_state_loaded(
                version=self._store.version,
                from_seed=True,
                correlation_id=correlation_id,
            )
            return self._store.state

        try:
            stored = await self._storage.load_state()
        except StorageError as e:
            await self._audit_logger.log_state_load_failed(
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        if stored is None:
            state = self._store.state
            from_seed = True
        else:
            state = self._store.load(stored)
            self._saved_version = state.version
            from_seed = False

        await self._audit_logger.log_state_loaded(
            version=state.version,
            from_seed=from_seed,
            correlation_id=correlation_id,
        )
        return state

    async def _persist(self, correlation_id: UUID) -> AppData:
        async with self._write_lock:
            state = self._store.state
            if self._storage is None:
                return state
            if self._saved_version is not None and state.version <= self._saved_version:
                # A write queued after ours already saved this version or newer
                return state

            try:
                await self._storage.save_state(state)
            except StorageError as e:
                await self._audit_logger.log_save_failed(
                    version=state.version,
                    error_message=str(e),
                    correlation_id=correlation_id,
                )
                raise

            self._saved_version = state.version
            await self._audit_logger.log_state_saved(
                version=state.version,
                correlation_id=correlation_id,
            )
            return state

    async def record_transaction(
        self,
        draft: Union[TransactionDraft, dict],
        expected_version: Optional[int] = None,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Commit a transaction, drop the saved draft and persist the ledger.

        Raises:
            ValidationError: Draft rejected, nothing changed
            StaleStateError: expected_version no longer current
            StorageError: Committed in memory but the save failed
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            transaction, state = self._store.commit(draft, expected_version=expected_version)
        except ValidationError as e:
            await self._audit_logger.log_transaction_rejected(
                issues=e.issue_dicts(),
                correlation_id=correlation_id,
            )
            raise
        except StaleStateError as e:
            await self._audit_logger.log_transaction_rejected(
                issues=[ValidationIssue(
                    field="version",
                    issue_type="stale_state",
                    message=str(e),
                    severity="error",
                    suggested_fix="Reload the ledger and try again",
                ).model_dump()],
                correlation_id=correlation_id,
            )
            raise

        await self._audit_logger.log_transaction_committed(
            transaction_id=transaction.id,
            transaction_type=transaction.type.value,
            amount=str(transaction.amount),
            version=state.version,
            correlation_id=correlation_id,
        )
        await self.clear_draft(correlation_id)
        await self._persist(correlation_id)
        return transaction

    async def save_draft(
        self,
        draft: Union[TransactionDraft, dict],
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Keep the entry form's work in progress so it survives a restart.

        Called on every edit. A failed save is audited and reported as
        False; the user carries on typing.

        Raises:
            ValidationError: The payload cannot even be parsed as a draft
        """
        draft = parse_draft(draft)
        if self._storage is None:
            return False
        try:
            return await self._storage.save_draft(draft)
        except StorageError as e:
            await self._audit_logger.log_error(
                error_type="draft_save_failed",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return False

    async def load_draft(
        self,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[TransactionDraft]:
        """The unsaved draft to restore into the entry form, if any."""
        if self._storage is None:
            return None
        try:
            return await self._storage.load_draft()
        except StorageError as e:
            await self._audit_logger.log_error(
                error_type="draft_load_failed",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return None

    async def clear_draft(self, correlation_id: Optional[UUID] = None) -> bool:
        """Forget the unsaved draft (after a commit, or when the user discards it)."""
        if self._storage is None:
            return False
        try:
            return await self._storage.clear_draft()
        except StorageError as e:
            await self._audit_logger.log_error(
                error_type="draft_clear_failed",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return False

    async def update_settings(
        self,
        correlation_id: Optional[UUID] = None,
        **changes: Any,
    ) -> AppData:
        """Change user preferences and persist."""
        correlation_id = correlation_id or create_correlation_id()
        state = self._store.update_settings(**changes)
        await self._audit_logger.log_settings_updated(
            changes=changes,
            version=state.version,
            correlation_id=correlation_id,
        )
        await self._persist(correlation_id)
        return state

    async def reset(self, correlation_id: Optional[UUID] = None) -> AppData:
        """Throw away all user data and go back to the default ledger."""
        correlation_id = correlation_id or create_correlation_id()
        state = self._store.reset()
        await self._audit_logger.log_state_reset(
            version=state.version,
            correlation_id=correlation_id,
        )
        await self._persist(correlation_id)
        return state

    async def export_json(
        self,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[str, bytes]:
        """
        Full backup of the ledger.

        The backup date is stamped into settings first, so the exported
        document records when it was taken.

        Returns:
            (filename, document bytes)
        """
        correlation_id = correlation_id or create_correlation_id()
        state = self._store.update_settings(last_backup_date=utc_now())
        await self._persist(correlation_id)

        filename = backup_filename("json", today)
        await self._audit_logger.log_export_created(
            export_format="json",
            filename=filename,
            correlation_id=correlation_id,
        )
        return filename, serialize(state)

    async def export_csv(
        self,
        today: Optional[date] = None,
        correlation_id: Optional[UUID] = None,
    ) -> tuple[str, str]:
        """
        Transaction log as CSV.

        Returns:
            (filename, csv text)
        """
        correlation_id = correlation_id or create_correlation_id()
        filename = backup_filename("csv", today)
        content = export_transactions_csv(self._store.state)
        await self._audit_logger.log_export_created(
            export_format="csv",
            filename=filename,
            correlation_id=correlation_id,
        )
        return filename, content

    async def import_json(
        self,
        raw: Union[bytes, str],
        confirm: ConfirmCallback,
        correlation_id: Optional[UUID] = None,
    ) -> bool:
        """
        Replace the whole ledger with a backup document.

        Args:
            raw: The backup file contents
            confirm: Called with the parsed candidate; the import only
                proceeds if it returns True (may be a coroutine)

        Returns:
            True if imported, False if the user declined

        Raises:
            FormatError: The document is not a valid ledger; nothing changed
        """
        correlation_id = correlation_id or create_correlation_id()

        try:
            candidate = deserialize(raw)
        except FormatError as e:
            await self._audit_logger.log_import_rejected(
                reason=str(e),
                issues=e.issue_dicts(),
                correlation_id=correlation_id,
            )
            raise

        decision = confirm(candidate)
        if inspect.isawaitable(decision):
            decision = await decision
        if not decision:
            await self._audit_logger.log_import_declined(correlation_id=correlation_id)
            return False

        state = self._store.replace_all(candidate)
        await self._audit_logger.log_state_imported(
            wallet_count=len(state.wallets),
            transaction_count=len(state.transactions),
            version=state.version,
            correlation_id=correlation_id,
        )
        await self._persist(correlation_id)
        return True

    def dashboard(self, reference_month: Optional[Union[date, datetime]] = None) -> MonthlySummary:
        """Dashboard figures for a month (current local month by default)."""
        return summarize_month(
            self._store.state,
            reference_month or datetime.now(),
            top_limit=self._top_categories_limit,
            warning_percent=self._budget_warning_percent,
        )


class ReceiptFlow:
    """
    Orchestrates receipt scanning.

    Flow:
    1. Check → image size within limits
    2. Analyze → ReceiptAgent reads the image
    3. Merge → results folded into the draft the user is editing

    The result is still a DRAFT. Committing it is the user's call.
    If analysis fails the user just carries on typing: the draft comes
    back unchanged.
    """

    def __init__(
        self,
        receipt_agent: Optional[ReceiptAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
        max_image_bytes: Optional[int] = None,
    ):
        self._receipt_agent = receipt_agent
        self._audit_logger = audit_logger or AuditLogger()
        self._max_image_bytes = max_image_bytes

    def _check_image(self, image: bytes) -> None:
        if self._max_image_bytes is not None and len(image) > self._max_image_bytes:
            issue = ValidationIssue(
                field="image",
                issue_type="too_large",
                message=(
                    f"Receipt image is {len(image)} bytes, "
                    f"the limit is {self._max_image_bytes}"
                ),
                severity="error",
                suggested_fix="Use a smaller photo",
            )
            raise ValidationError.from_result(
                ValidationResult(subject="receipt", issues=[issue])
            )

    async def scan_receipt(
        self,
        draft: TransactionDraft,
        image: bytes,
        state: AppData,
        mime_type: str = "image/png",
        edited_fields: Iterable[str] = (),
        correlation_id: Optional[UUID] = None,
    ) -> tuple[TransactionDraft, Optional[ReceiptAnalysis]]:
        """
        Scan a receipt into a draft.

        Returns:
            (draft, analysis). On failure the original draft and None.

        Raises:
            ValidationError: The image exceeds the size limit
        """
        correlation_id = correlation_id or create_correlation_id()
        self._check_image(image)

        if self._receipt_agent is None:
            await self._audit_logger.log_receipt_analysis_failed(
                error_message="Receipt analysis is not configured",
                correlation_id=correlation_id,
            )
            return draft, None

        try:
            analysis = await self._receipt_agent.analyze_receipt(
                image,
                mime_type=mime_type,
                category_names=[c.name for c in state.categories],
            )
        except CollaboratorError as e:
            await self._audit_logger.log_external_service_error(
                service="gemini",
                error_message=str(e),
                correlation_id=correlation_id,
            )
            await self._audit_logger.log_receipt_analysis_failed(
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return draft, None

        await self._audit_logger.log_receipt_analyzed(
            fields_found=analysis.fields_found(),
            correlation_id=correlation_id,
        )
        merged = merge_receipt_into_draft(
            draft, analysis, state.categories, edited_fields=edited_fields,
        )
        return merged, analysis


class InsightFlow:
    """Orchestrates AI spending insights. Output is display-only."""

    def __init__(
        self,
        insight_agent: Optional[InsightAgent] = None,
        audit_logger: Optional[AuditLogger] = None,
        transaction_limit: int = 50,
    ):
        self._insight_agent = insight_agent
        self._audit_logger = audit_logger or AuditLogger()
        self._transaction_limit = transaction_limit

    async def get_insights(
        self,
        state: AppData,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """Insights text, or a fallback message if the agent fails."""
        correlation_id = correlation_id or create_correlation_id()

        if self._insight_agent is None:
            return INSIGHTS_UNAVAILABLE

        try:
            text = await self._insight_agent.generate_insights(
                state.transactions,
                state.categories,
                limit=self._transaction_limit,
            )
        except CollaboratorError as e:
            await self._audit_logger.log_insights_failed(
                error_message=str(e),
                correlation_id=correlation_id,
            )
            return INSIGHTS_FALLBACK

        await self._audit_logger.log_insights_generated(
            transaction_count=min(len(state.transactions), self._transaction_limit),
            correlation_id=correlation_id,
        )
        return text


def create_app_components(
    use_storage: bool = True,
) -> tuple[LedgerFlow, ReceiptFlow, InsightFlow]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to persist to the JSON files under data_dir.
                    Set to False to keep everything in memory.

    Returns:
        (ledger_flow, receipt_flow, insight_flow)

    Call `await ledger_flow.startup()` before use.
    """
    settings = get_settings()
    app_settings = settings.app

    if use_storage:
        ledger_storage = JsonFileLedgerStorage()
        audit_logger = AuditLogger(JsonFileAuditStorage())
    else:
        ledger_storage = InMemoryLedgerStorage()
        audit_logger = AuditLogger(InMemoryAuditStorage())

    receipt_agent = None
    insight_agent = None
    try:
        receipt_agent = ReceiptAgent()
        insight_agent = InsightAgent()
    except PydanticValidationError as e:
        # Gemini not configured - the ledger works without it
        logger.warning("ai_agents_not_configured", error=str(e))

    ledger_flow = LedgerFlow(
        storage=ledger_storage,
        audit_logger=audit_logger,
        top_categories_limit=app_settings.top_categories_limit,
        budget_warning_percent=Decimal(app_settings.budget_warning_percent),
    )
    receipt_flow = ReceiptFlow(
        receipt_agent=receipt_agent,
        audit_logger=audit_logger,
        max_image_bytes=app_settings.max_receipt_size_bytes,
    )
    insight_flow = InsightFlow(
        insight_agent=insight_agent,
        audit_logger=audit_logger,
        transaction_limit=app_settings.insight_transaction_limit,
    )

    return ledger_flow, receipt_flow, insight_flow

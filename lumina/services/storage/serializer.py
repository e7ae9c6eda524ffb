"""
Ledger Codec

Turns AppData into bytes and back, and renders the CSV export.
The entry form's unsaved draft uses the same wire style.

Wire format: UTF-8 JSON, camelCase keys, sorted, 2-space indent.
Money is written as exact decimal strings ("30.00"). Backups from older
releases stored money as JSON numbers; those are parsed straight to
Decimal so no float rounding sneaks in on import.
"""

import csv
import io
import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Union

from pydantic import ValidationError as PydanticValidationError

from lumina.models.ledger import AppData, TransactionDraft, ValidationIssue
from lumina.queries.aggregation import local_date
from lumina.services.storage.interface import FormatError
from lumina.validation.validator import StateValidator, issues_from_pydantic


CSV_HEADER = ["Date", "Amount", "Type", "Category", "Wallet", "Note"]
MISSING_NAME = "N/A"

BACKUP_PREFIX = "lumina"
BACKUP_KINDS = {
    "json": ("backup", "json"),
    "csv": ("transactions", "csv"),
}


def serialize(state: AppData) -> bytes:
    """Encode the whole aggregate. Equal states always give equal bytes."""
    document = state.model_dump(mode="json", by_alias=True)
    return json.dumps(document, sort_keys=True, indent=2, ensure_ascii=False).encode("utf-8")


def deserialize(raw: Union[bytes, str]) -> AppData:
    """
    Decode and validate a ledger document.

    Raises:
        FormatError: Bytes are not UTF-8, the text is not JSON, or the
            document fails the AppData schema. Schema failures carry
            every issue found, not just the first.
    """
    if isinstance(raw, bytes):
        try:
            raw = raw.decode("utf-8")
        except UnicodeDecodeError as e:
            raise FormatError(f"Backup is not UTF-8 text: {e}")

    try:
        payload = json.loads(raw, parse_float=Decimal)
    except json.JSONDecodeError as e:
        raise FormatError(
            f"Backup is not valid JSON: {e.msg} (line {e.lineno}, column {e.colno})",
            [ValidationIssue(
                field="(root)",
                issue_type="malformed_json",
                message=e.msg,
                severity="error",
            )],
        )
    except (RecursionError, ValueError) as e:
        # Nesting too deep for the decoder, or a number it cannot represent
        raise FormatError(
            f"Backup is not valid JSON: {e}",
            [ValidationIssue(
                field="(root)",
                issue_type="malformed_json",
                message=str(e),
                severity="error",
            )],
        )

    result, state = StateValidator().validate(payload)
    if state is None or result.has_errors:
        raise FormatError(
            f"Backup does not look like Lumina data ({result.error_count} errors)",
            result.errors,
        )
    return state


def serialize_draft(draft: TransactionDraft) -> bytes:
    """Encode an unsaved entry-form draft, in the same wire style as the ledger."""
    document = draft.model_dump(mode="json", by_alias=True, exclude_none=True)
    return json.dumps(document, sort_keys=True, indent=2, ensure_ascii=False).encode("utf-8")


def deserialize_draft(raw: Union[bytes, str]) -> TransactionDraft:
    """
    Decode a stored draft.

    Only the draft's shape is checked; whether it would commit is decided
    when it is saved as a transaction.

    Raises:
        FormatError: The stored draft cannot be read back
    """
    try:
        if isinstance(raw, bytes):
            raw = raw.decode("utf-8")
        payload = json.loads(raw, parse_float=Decimal)
    except (RecursionError, ValueError) as e:
        raise FormatError(f"Stored draft is not valid JSON: {e}")

    if not isinstance(payload, dict):
        raise FormatError(f"Stored draft must be a JSON object, got {type(payload).__name__}")

    try:
        return TransactionDraft.model_validate(payload)
    except PydanticValidationError as e:
        raise FormatError("Stored draft does not match the draft schema", issues_from_pydantic(e))


def export_transactions_csv(state: AppData) -> str:
    """
    Render the transaction log as CSV, in ledger order.

    Category and wallet ids are resolved to names; anything that does
    not resolve (transfers, deleted references) is written as N/A.
    """
    categories = {c.id: c.name for c in state.categories}
    wallets = {w.id: w.name for w in state.wallets}

    buffer = io.StringIO()
    writer = csv.writer(buffer, quoting=csv.QUOTE_MINIMAL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for t in state.transactions:
        writer.writerow([
            local_date(t.date).isoformat(),
            str(t.amount),
            t.type.value,
            categories.get(t.category_id, MISSING_NAME),
            wallets.get(t.wallet_id, MISSING_NAME),
            t.note,
        ])
    return buffer.getvalue()


def backup_filename(kind: str, today: Optional[date] = None) -> str:
    """
    Export file name stamped with the current date.

    Args:
        kind: 'json' for a full backup, 'csv' for the transaction export
        today: Date to stamp (defaults to the local date)
    """
    if kind not in BACKUP_KINDS:
        raise ValueError(f"Unknown export kind: {kind!r}")
    if today is None:
        today = datetime.now().date()
    label, extension = BACKUP_KINDS[kind]
    return f"{BACKUP_PREFIX}_{label}_{today.isoformat()}.{extension}"

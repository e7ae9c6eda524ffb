"""
Draft Merging

Receipt-scanner output is merged into the draft the user is editing.
It is a merge, not a replace: fields the scanner did not return stay as
they are, and fields the user already edited by hand win over the scan.
"""

from collections.abc import Iterable
from typing import Optional

from lumina.models.ledger import Category, ReceiptAnalysis, TransactionDraft


def resolve_category(
    name: Optional[str],
    categories: Iterable[Category],
) -> Optional[Category]:
    """
    Match a free-text category name against the user's categories.

    Case-insensitive substring match in either direction, so "Food"
    finds "Food & Dining" and "Utilities bill" finds "Utilities".
    The first match in category order wins.
    """
    if not name or not name.strip():
        return None
    needle = name.strip().lower()
    for category in categories:
        candidate = category.name.lower()
        if candidate in needle or needle in candidate:
            return category
    return None


def merge_receipt_into_draft(
    draft: TransactionDraft,
    analysis: ReceiptAnalysis,
    categories: Iterable[Category],
    edited_fields: Iterable[str] = (),
) -> TransactionDraft:
    """
    Fold receipt-scan results into a draft.

    Args:
        draft: The draft as currently shown to the user
        analysis: Scanner output, any field may be missing
        categories: Categories to resolve the suggested category against
        edited_fields: Draft fields the user typed in; never overwritten

    Returns:
        A new draft. The input draft is not modified.
    """
    locked = set(edited_fields)
    updates = {}

    if analysis.total is not None and "amount" not in locked:
        updates["amount"] = analysis.total

    if analysis.date is not None and "date" not in locked:
        updates["date"] = analysis.date

    # The merchant is appended so a note the user started is kept
    if analysis.merchant and "note" not in locked:
        note = draft.note or ""
        updates["note"] = f"{note} - {analysis.merchant}" if note else analysis.merchant

    if analysis.category and "category_id" not in locked:
        match = resolve_category(analysis.category, categories)
        if match is not None:
            updates["category_id"] = match.id

    return draft.model_copy(update=updates)

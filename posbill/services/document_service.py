# Overview: Per-store document number allocation.

from __future__ import annotations

from sqlalchemy import update

from ..extensions import db
from ..models import DocumentSequence


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""


def next_document_number(
    *,
    store_id: int,
    document_type: str,
    prefix: str,
    pad: int = 5,
) -> str:
    """
    Allocate the next document number for a store/type inside the caller's
    transaction (no commit here).

    Increments the (store_id, document_type) row with a single UPDATE so two
    concurrent callers can never receive the same number.
    """
    if not store_id:
        raise DocumentSequenceError("store_id is required")
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.store_id == store_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        db.session.flush()
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(store_id=store_id, document_type=document_type)
            .scalar()
        )
        next_num = current - 1
    else:
        # First document of this type for the store. A concurrent first insert
        # fails on uq_doc_sequences_store_type and aborts the caller.
        seq = DocumentSequence(store_id=store_id, document_type=document_type, next_number=2)
        db.session.add(seq)
        db.session.flush()
        next_num = 1

    return f"{prefix}-{str(next_num).zfill(pad)}"

# Overview: Service-layer operations for document numbering; encapsulates business logic and database work.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence

SALE_DOCUMENT = "SALE"
PURCHASE_DOCUMENT = "PURCHASE"


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _current_number(document_type: str) -> int:
    return (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type)
        .scalar()
    )


def next_document_number(*, document_type: str, prefix: str, pad: int = 6) -> str:
    """
    Allocate the next document number for a type inside the current transaction.

    Does not commit: the counter bump lands or rolls back together with the
    document that uses it. The UPDATE takes a row lock on databases that
    support it; on SQLite the caller already holds the write lock.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        next_num = _current_number(document_type) - 1
    else:
        seq = DocumentSequence(document_type=document_type, next_number=2)
        try:
            with db.session.begin_nested():
                db.session.add(seq)
            next_num = 1
        except IntegrityError:
            # Another writer created the row first
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise DocumentSequenceError(f"could not allocate {document_type} number")
            next_num = _current_number(document_type) - 1

    return f"{prefix}-{next_num:0{pad}d}"


def next_transaction_number() -> str:
    return next_document_number(document_type=SALE_DOCUMENT, prefix="TXN")


def next_purchase_number() -> str:
    return next_document_number(document_type=PURCHASE_DOCUMENT, prefix="PO")

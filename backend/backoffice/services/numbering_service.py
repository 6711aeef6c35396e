# Overview: Atomic document number allocation (invoice numbers).

from __future__ import annotations

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence, Invoice


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def _initial_number(prefix: str, start: int) -> int:
    """
    First number for a new sequence.

    Continues after the highest existing "<prefix>-<n>" invoice so a restored
    backup never collides with freshly allocated numbers.
    """
    highest = start - 1
    rows = (
        db.session.query(Invoice.invoice_number)
        .filter(Invoice.invoice_number.like(f"{prefix}-%"))
        .all()
    )
    for (number,) in rows:
        tail = number[len(prefix) + 1:]
        if tail.isdigit():
            highest = max(highest, int(tail))
    return highest + 1


def next_document_number(*, prefix: str, start: int = 1) -> str:
    """
    Allocate the next "<prefix>-<n>" number inside the current transaction.

    The counter row is bumped with a single UPDATE so two writers cannot
    receive the same number. The caller commits.
    """
    if not prefix:
        raise DocumentSequenceError("prefix is required")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.prefix == prefix)
        .values(next_number=DocumentSequence.next_number + 1)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(prefix=prefix)
            .scalar()
        )
        return f"{prefix}-{current - 1}"

    first = _initial_number(prefix, start)
    seq = DocumentSequence(prefix=prefix, next_number=first + 1)
    db.session.add(seq)
    try:
        db.session.flush()
    except IntegrityError as exc:
        # Another writer created the row first
        raise DocumentSequenceError(f"could not allocate number for {prefix}") from exc

    return f"{prefix}-{first}"


def next_invoice_number() -> str:
    return next_document_number(
        prefix=current_app.config["INVOICE_PREFIX"],
        start=current_app.config["INVOICE_NUMBER_START"],
    )


def preview_next_invoice_number() -> str:
    """Number the next allocation would return, without allocating it."""
    prefix = current_app.config["INVOICE_PREFIX"]
    seq = db.session.query(DocumentSequence).filter_by(prefix=prefix).first()
    if seq is not None:
        return f"{prefix}-{seq.next_number}"
    return f"{prefix}-{_initial_number(prefix, current_app.config['INVOICE_NUMBER_START'])}"


def sync_invoice_sequence() -> None:
    """
    Move the invoice counter past the highest stored invoice number.

    Called after invoices are written with explicit numbers (restore). Runs
    inside the caller's transaction; the counter never moves backwards.
    """
    prefix = current_app.config["INVOICE_PREFIX"]
    floor = _initial_number(prefix, current_app.config["INVOICE_NUMBER_START"])
    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.prefix == prefix)
        .where(DocumentSequence.next_number < floor)
        .values(next_number=floor)
    )
    db.session.execute(stmt)

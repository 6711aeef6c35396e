from __future__ import annotations

from ..extensions import db


class DocumentSequence(db.Model):
    """
    Monotonic number allocator per document prefix (e.g. "WIN-INV").

    next_number is the number the next allocation will hand out.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("prefix", name="uq_document_sequences_prefix"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    prefix = db.Column(db.String(32), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)

    def __repr__(self) -> str:
        return f"<DocumentSequence prefix={self.prefix!r} next={self.next_number}>"

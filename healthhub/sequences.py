"""Per-owner document numbering (tickets, cash sessions, purchase orders)"""

import logging

from sqlalchemy.orm import Session

from .models_pharmacy import DocumentSequence

logger = logging.getLogger(__name__)


def next_sequence_value(db: Session, owner_id: str, sequence_type: str, prefix: str) -> int:
    """
    Increment and return the counter of (owner, type, prefix).

    The row stays locked until the caller's transaction ends (SELECT ... FOR
    UPDATE, a no-op on sqlite).
    """
    sequence = (
        db.query(DocumentSequence)
        .filter(
            DocumentSequence.pharmacy_id == owner_id,
            DocumentSequence.sequence_type == sequence_type,
            DocumentSequence.prefix == prefix,
        )
        .with_for_update()
        .first()
    )
    if not sequence:
        sequence = DocumentSequence(
            pharmacy_id=owner_id, sequence_type=sequence_type, prefix=prefix, last_value=0
        )
        db.add(sequence)

    sequence.last_value = (sequence.last_value or 0) + 1
    db.flush()
    return sequence.last_value


def next_document_number(db: Session, owner_id: str, sequence_type: str, prefix: str) -> str:
    """'TICKET' -> 'TICKET-42', 'SESSION-2025-03-01' -> 'SESSION-2025-03-01-3'"""
    return f"{prefix}-{next_sequence_value(db, owner_id, sequence_type, prefix)}"

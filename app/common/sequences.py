"""
Secuencias de numeración de documentos por organización.

INV-1001, PAY-1001, QT-000001, SO-001001, ...
"""
from datetime import datetime
from uuid import UUID, uuid4

from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Session

from app.common.mixins import TenantMixin
from app.database.database import Base


# tipo -> (prefijo, primer número, ancho del relleno con ceros)
SEQUENCE_FORMATS = {
    "invoice": ("INV-", 1001, 0),
    "payment": ("PAY-", 1001, 0),
    "quote": ("QT-", 1, 6),
    "sales_order": ("SO-", 1001, 6),
}


class DocumentSequence(Base, TenantMixin):
    """Tabla para manejar secuencias de numeración por tipo de documento"""
    __tablename__ = "document_sequences"

    id = Column(Uuid(as_uuid=True), primary_key=True, default=uuid4)
    document_type = Column(String(30), nullable=False)
    current_number = Column(Integer, nullable=False, default=0)
    prefix = Column(String(10), nullable=True)

    created_at = Column(DateTime, nullable=False, default=datetime.utcnow)
    updated_at = Column(DateTime, nullable=False, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("tenant_id", "document_type", name="uq_sequence_tenant_type"),
    )


def next_document_number(db: Session, tenant_id: UUID, document_type: str) -> str:
    """
    Reservar el siguiente número para un tipo de documento.

    La fila de la secuencia se bloquea con FOR UPDATE; el número queda
    reservado cuando el llamador hace commit de su transacción.
    """
    prefix, start, width = SEQUENCE_FORMATS[document_type]

    sequence = db.query(DocumentSequence).filter(
        DocumentSequence.tenant_id == tenant_id,
        DocumentSequence.document_type == document_type
    ).with_for_update().first()

    if not sequence:
        sequence = DocumentSequence(
            tenant_id=tenant_id,
            document_type=document_type,
            current_number=start - 1,
            prefix=prefix
        )
        db.add(sequence)
        db.flush()

    sequence.current_number += 1
    sequence.updated_at = datetime.utcnow()

    number = str(sequence.current_number).zfill(width) if width else str(sequence.current_number)
    return f"{sequence.prefix or prefix}{number}"

# app/services/sequences.py

from __future__ import annotations

import zlib
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy import text

from app.extensions import db
from app.models import DeliveryNote, Job, PaymentVoucher
from app.utils.logging import get_logger

logger = get_logger("sequences")

SEQUENCE_WIDTH = 3


@dataclass(frozen=True)
class SequenceScope:
    """
    Correlativo derivado de las filas existentes (no hay tabla de contadores).
    `template` define el prefijo del período: año para SH/VH, año+mes para DN.
    """

    name: str
    template: str
    column: object

    def prefix(self, now: datetime) -> str:
        return self.template.format(year=now.year, month=now.month)


JOB_SCOPE = SequenceScope("job", "SH-{year}-", Job.id)
DELIVERY_NOTE_SCOPE = SequenceScope("delivery_note", "DN-{year}-{month:02d}-", DeliveryNote.id)
VOUCHER_SCOPE = SequenceScope("voucher", "VH-{year}-", PaymentVoucher.voucher_no)


def extract_sequence(identifier: str, prefix: str) -> Optional[int]:
    """
    "DN-2025-03-014" con prefijo "DN-2025-03-" -> 14.
    Si el sufijo no es numérico (ids importados a mano) -> None.
    """
    if not identifier or not identifier.startswith(prefix):
        return None
    suffix = identifier[len(prefix):]
    if not suffix.isdigit():
        return None
    return int(suffix)


def format_identifier(prefix: str, seq: int) -> str:
    return f"{prefix}{seq:0{SEQUENCE_WIDTH}d}"


def _lock_period(prefix: str) -> None:
    """
    PostgreSQL: advisory lock de transacción por período (se libera en commit/rollback).
    Cubre el período vacío, donde FOR UPDATE no bloquea ninguna fila.
    """
    if db.session.get_bind().dialect.name != "postgresql":
        return
    key = zlib.crc32(prefix.encode("utf-8"))
    db.session.execute(text("SELECT pg_advisory_xact_lock(:key)"), {"key": key})


def next_id(scope: SequenceScope, now: Optional[datetime] = None) -> str:
    """
    Siguiente identificador del período: max(sufijo) + 1, empezando en 1.

    Debe correr dentro de la misma transacción que el INSERT que lo usa.
    Las filas del rango escaneado quedan bloqueadas (FOR UPDATE) hasta el commit.
    Si dos escritores calculan el mismo valor (período vacío), el PK/unique
    rechaza al segundo y run_in_transaction reintenta.
    """
    now = now or datetime.utcnow()
    prefix = scope.prefix(now)
    _lock_period(prefix)

    rows = (
        db.session.query(scope.column)
        .filter(scope.column.like(f"{prefix}%"))
        .with_for_update()
        .all()
    )

    highest = 0
    for (identifier,) in rows:
        seq = extract_sequence(identifier, prefix)
        if seq is not None and seq > highest:
            highest = seq

    allocated = format_identifier(prefix, highest + 1)
    logger.debug(f"Sequence scope={scope.name} prefix={prefix} scanned={len(rows)} allocated={allocated}")
    return allocated

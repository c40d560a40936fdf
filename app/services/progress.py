# app/services/progress.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, List, Optional

from app.extensions import db
from app.models import (
    BillOfLading, ClearanceSchedule, DeliveryNoteItem, Job, JobPayment, JobStatus, NO_PAYMENT_TYPE,
    PaymentStatus,
)
from app.services.actor import Actor
from app.services.queries import get_job
from app.utils.logging import get_logger
from app.utils.strings import normalize_reference

logger = get_logger("progress")

# progreso fijo cuando todos los pagos del job quedaron Paid
PAYMENT_SETTLED_PROGRESS = 75


@dataclass
class DeliveryProgress:
    job_id: str
    delivered: int
    total: int
    progress: int
    status: str


def total_bls(job: Job) -> int:
    """Un job sin BLs cargados cuenta como un BL implícito."""
    count = BillOfLading.query.filter_by(job_id=job.id).count()
    return count if count > 0 else 1


def delivered_bl_count(job: Job) -> int:
    """
    BLs distintos del job alcanzados por DeliveryNoteItem -> ClearanceSchedule.bl_awb.
    - job sin BLs: cualquier item entregado cubre el BL implícito
    - job con BLs: la referencia del schedule se compara normalizada contra master/house;
      referencias que no calzan con ningún BL se ignoran
    """
    rows = (
        db.session.query(DeliveryNoteItem.id, ClearanceSchedule.bl_awb)
        .outerjoin(ClearanceSchedule, DeliveryNoteItem.schedule_id == ClearanceSchedule.id)
        .filter(DeliveryNoteItem.job_id == job.id)
        .all()
    )
    if not rows:
        return 0

    bls = BillOfLading.query.filter_by(job_id=job.id).all()
    if not bls:
        return 1

    ref_to_bl = {}
    for bl in bls:
        for ref in bl.references:
            ref_to_bl.setdefault(normalize_reference(ref), bl.id)

    delivered = set()
    for _, bl_awb in rows:
        ref = normalize_reference(bl_awb)
        if not ref:
            continue
        bl_id = ref_to_bl.get(ref)
        if bl_id is None:
            logger.warning(f"Job {job.id}: referencia de BL entregada sin BL registrado: {bl_awb!r}")
            continue
        delivered.add(bl_id)

    return len(delivered)


def recompute_delivery(job_id: str) -> DeliveryProgress:
    """
    Recalcula progress/status del job a partir de los BLs entregados.
    Corre dentro de la transacción que creó el delivery note (bloquea la fila del job).
    Idempotente: con los mismos hijos da el mismo (progress, status).
    """
    job = get_job(job_id, lock=True)

    total = total_bls(job)
    delivered = min(delivered_bl_count(job), total)

    if job.status == JobStatus.COMPLETED.value:
        # Completed es manual y ya implica 100; no se toca
        return DeliveryProgress(job.id, delivered, total, job.progress, job.status)

    progress = (delivered * 100) // total
    if delivered >= total:
        progress = 100
        job.transition_to(JobStatus.CLEARED)

    job.progress = progress
    db.session.flush()

    logger.info(f"Delivery recompute job={job.id} delivered={delivered}/{total} progress={progress} status={job.status}")
    return DeliveryProgress(job.id, delivered, total, progress, job.status)


def recompute_payment_completion(job_ids: Iterable[str], actor: Optional[Actor] = None, outbox=None) -> List[str]:
    """
    Para cada job: si no quedan pagos pagables (ni status ni tipo "No Payment") sin Paid
    y no está Completed, progress = 75 y se encola un evento PAYMENT_COMPLETED.
    Solo debe llamarse en la transición a Paid (no en lecturas) para no duplicar eventos.
    Los jobs se bloquean en orden de id para evitar deadlocks entre lotes.
    Retorna los ids de jobs que quedaron liquidados.
    """
    settled = []
    for job_id in sorted(set(job_ids)):
        job = get_job(job_id, lock=True)

        remaining = (
            JobPayment.query
            .filter(JobPayment.job_id == job.id)
            .filter(JobPayment.status.notin_([PaymentStatus.PAID.value, PaymentStatus.NO_PAYMENT.value]))
            .filter(JobPayment.payment_type != NO_PAYMENT_TYPE)
            .count()
        )
        if remaining or job.status == JobStatus.COMPLETED.value:
            continue

        job.progress = PAYMENT_SETTLED_PROGRESS
        settled.append(job.id)

        if outbox is not None:
            outbox.record(actor, "PAYMENT_COMPLETED", f"Todos los pagos del job {job.id} están pagados", "SHIPMENT", job.id)

    db.session.flush()
    if settled:
        logger.info(f"Pagos liquidados jobs={settled}")
    return settled

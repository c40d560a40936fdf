# app/services/jobs.py

from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from app.errors import PreconditionFailed, ValidationError
from app.extensions import db
from app.models import BillOfLading, Container, Job, JobStatus, PaymentStatus
from app.services import progress, sequences
from app.services.actor import Actor, SYSTEM
from app.services.audit import ROLE_ALL
from app.services.queries import get_job
from app.services.transactions import run_in_transaction
from app.utils.logging import get_logger
from app.utils.strings import normalize_reference

logger = get_logger("jobs")

TRANSPORT_MODES = ("SEA", "AIR")


def register_job(
    customer: Optional[str] = None,
    sender_name: Optional[str] = None,
    receiver_name: Optional[str] = None,
    bl_awb_no: Optional[str] = None,
    transport_mode: str = "SEA",
    vessel_name: Optional[str] = None,
    consignee_code: Optional[str] = None,
    actor: Actor = SYSTEM,
    registered_at: Optional[datetime] = None,
) -> Job:
    """Crea un job nuevo: id SH-{año}-{seq}, status New, progress 0."""
    mode = (transport_mode or "SEA").upper().strip()
    if mode not in TRANSPORT_MODES:
        raise ValidationError(f"Modo de transporte no soportado: {transport_mode}")

    def work(outbox):
        job_id = sequences.next_id(sequences.JOB_SCOPE, registered_at)
        job = Job(
            id=job_id,
            customer=customer or receiver_name or "Unknown",
            sender_name=sender_name,
            receiver_name=receiver_name,
            consignee_code=consignee_code,
            bl_awb_no=bl_awb_no,
            transport_mode=mode,
            vessel_name=vessel_name,
            status=JobStatus.NEW.value,
            progress=0,
            created_by=actor.id,
        )
        db.session.add(job)
        db.session.flush()

        outbox.record(actor, "CREATE_SHIPMENT", f"Created shipment {job_id}", "SHIPMENT", job_id)
        outbox.notify(ROLE_ALL, "New Job Created", f"New Job {job_id} created by {actor.username}",
                      link=f"/registry?selectedJobId={job_id}")
        return job

    job = run_in_transaction(work, label="register_job")
    logger.info(f"Job registrado id={job.id}")
    return job


def add_bill_of_lading(
    job_id: str,
    master_bl: Optional[str] = None,
    house_bl: Optional[str] = None,
    vessel: Optional[str] = None,
    port_of_loading: Optional[str] = None,
    port_of_discharge: Optional[str] = None,
    delivery_agent: Optional[str] = None,
    packages: Optional[str] = None,
    containers: Optional[List[dict]] = None,
    actor: Actor = SYSTEM,
) -> BillOfLading:
    """
    Agrega un BL (y opcionalmente sus contenedores).
    Cambia totalBLs, así que se recalcula el progreso de entrega en la misma transacción.
    Un job ya despachado (Cleared/Completed) no admite BLs nuevos.
    """
    if not (master_bl or house_bl):
        raise ValidationError("Se requiere master BL o house BL.")

    def work(outbox):
        job = get_job(job_id, lock=True)
        if job.status in (JobStatus.CLEARED.value, JobStatus.COMPLETED.value):
            raise PreconditionFailed(
                f"Job {job.id} ya está {job.status}; no se pueden agregar BLs.", offending_ids=[job.id]
            )

        bl = BillOfLading(
            job_id=job.id,
            master_bl=master_bl,
            house_bl=house_bl,
            vessel=vessel,
            port_of_loading=port_of_loading,
            port_of_discharge=port_of_discharge,
            delivery_agent=delivery_agent,
            packages=packages,
        )
        db.session.add(bl)
        db.session.flush()

        for c in containers or []:
            _add_container_row(job.id, c, bl_id=bl.id)

        progress.recompute_delivery(job.id)
        outbox.record(actor, "ADD_BL", f"Added BL {master_bl or house_bl} to job {job.id}", "SHIPMENT", job.id)
        return bl

    return run_in_transaction(work, label="add_bill_of_lading")


def _add_container_row(job_id: str, data: dict, bl_id: Optional[int] = None) -> Container:
    container_no = normalize_reference(data.get("container_no"))
    if not container_no:
        raise ValidationError("Contenedor sin número.")
    container = Container(
        job_id=job_id,
        bl_id=bl_id if bl_id is not None else data.get("bl_id"),
        container_no=container_no,
        container_type=data.get("container_type"),
        packages=list(data.get("packages") or []),
    )
    db.session.add(container)
    return container


def add_container(job_id: str, container_no: str, container_type: Optional[str] = None,
                  packages: Optional[List[dict]] = None, bl_id: Optional[int] = None,
                  actor: Actor = SYSTEM) -> Container:
    def work(outbox):
        job = get_job(job_id)
        if bl_id is not None:
            bl = db.session.get(BillOfLading, bl_id)
            if bl is None or bl.job_id != job.id:
                raise ValidationError(f"El BL {bl_id} no pertenece al job {job.id}.", offending_ids=[bl_id])
        container = _add_container_row(job.id, {
            "container_no": container_no,
            "container_type": container_type,
            "packages": packages,
        }, bl_id=bl_id)
        db.session.flush()
        outbox.record(actor, "ADD_CONTAINER", f"Added container {container.container_no}", "SHIPMENT", job.id)
        return container

    return run_in_transaction(work, label="add_container")


def get_job_summary(job_id: str) -> dict:
    """Vista consolidada del job: hijos, progreso de entrega y estado de pagos."""
    job = get_job(job_id)

    total = progress.total_bls(job)
    delivered = min(progress.delivered_bl_count(job), total)

    payable = [p for p in job.payments if p.is_payable]
    paid = [p for p in payable if p.status == PaymentStatus.PAID.value]

    return {
        "id": job.id,
        "customer": job.customer,
        "exporter": job.sender_name,
        "consignee": job.receiver_name,
        "status": job.status,
        "progress": job.progress,
        "bls": [
            {"id": bl.id, "master_bl": bl.master_bl, "house_bl": bl.house_bl, "vessel": bl.vessel}
            for bl in job.bills_of_lading
        ],
        "containers": [
            {"id": c.id, "container_no": c.container_no, "container_type": c.container_type,
             "bl_id": c.bl_id, "packages": c.packages}
            for c in job.containers
        ],
        "clearance_schedules": [
            {"id": s.id, "bl_awb": s.bl_awb, "clearance_date": s.clearance_date.isoformat(), "port": s.port}
            for s in job.clearance_schedules
        ],
        "delivered_bls": delivered,
        "total_bls": total,
        "is_fully_paid": bool(payable) and len(paid) == len(payable),
        "has_pending_payments": any(p.status == PaymentStatus.PENDING.value for p in payable),
    }

# app/services/clearance.py

from __future__ import annotations

from datetime import date
from typing import Dict, List, Optional

from flask import current_app
from sqlalchemy import or_, select

from app.errors import ConflictError, PreconditionFailed, ValidationError
from app.extensions import db
from app.models import ClearanceSchedule, Consignee, DeliveryNoteItem, Job, JobStatus
from app.services.actor import Actor, SYSTEM
from app.services.matching import LazyCandidates
from app.services.queries import delivered_schedule_ids, get_job, get_schedule
from app.services.transactions import run_in_transaction
from app.utils.dates import parse_date
from app.utils.logging import get_logger

logger = get_logger("clearance")

# campos editables al reagendar (además de fecha y motivo)
RESCHEDULE_FIELDS = (
    "clearance_type", "port", "bl_awb", "transport_mode", "remarks", "packages",
    "clearance_method", "container_no", "container_type",
    "delivery_contact_name", "delivery_contact_phone",
)


def _find_duplicate(job_id: str, bl_awb: Optional[str], clearance_date: date,
                    exclude_id: Optional[int] = None) -> Optional[ClearanceSchedule]:
    q = ClearanceSchedule.query.filter(
        ClearanceSchedule.job_id == job_id,
        ClearanceSchedule.clearance_date == clearance_date,
    )
    if bl_awb is None:
        q = q.filter(ClearanceSchedule.bl_awb.is_(None))
    else:
        q = q.filter(ClearanceSchedule.bl_awb == bl_awb)
    if exclude_id is not None:
        q = q.filter(ClearanceSchedule.id != exclude_id)
    return q.first()


def schedule_clearance(job_id: str, clearance_date, bl_awb: Optional[str] = None,
                       actor: Actor = SYSTEM, **fields) -> ClearanceSchedule:
    """
    Agenda el despacho de un BL. El primer schedule mueve el job de New a Pending.
    Mismo BL + fecha ya agendado -> ConflictError (nunca se duplica).
    """
    parsed = parse_date(clearance_date)
    if not job_id or parsed is None:
        raise ValidationError("Job ID y fecha son requeridos.")

    unknown = set(fields) - set(RESCHEDULE_FIELDS)
    if unknown:
        raise ValidationError(f"Campos no soportados: {', '.join(sorted(unknown))}")

    def work(outbox):
        job = get_job(job_id, lock=True)

        existing = _find_duplicate(job.id, bl_awb, parsed)
        if existing is not None:
            raise ConflictError(
                f"El BL {bl_awb} ya tiene despacho agendado para {parsed.isoformat()}.",
                offending_ids=[existing.id],
            )

        schedule = ClearanceSchedule(job_id=job.id, bl_awb=bl_awb, clearance_date=parsed, **fields)
        db.session.add(schedule)
        db.session.flush()

        if job.status == JobStatus.NEW.value:
            job.transition_to(JobStatus.PENDING)

        outbox.record(actor, "CREATE_CLEARANCE_SCHEDULE",
                      f"Scheduled clearance for Job {job.id} on {parsed.isoformat()}",
                      "clearance_schedules", schedule.id)
        return schedule

    return run_in_transaction(work, label="schedule_clearance")


def reschedule_clearance(schedule_id: int, clearance_date, reason: str,
                         actor: Actor = SYSTEM, **fields) -> ClearanceSchedule:
    """
    Mueve un schedule a otra fecha registrando el motivo.
    Un schedule ya entregado (ligado a un delivery note) no se puede mover.
    """
    parsed = parse_date(clearance_date)
    if parsed is None:
        raise ValidationError("La nueva fecha es requerida.", offending_ids=[schedule_id])
    if not (reason or "").strip():
        raise ValidationError("El motivo de reagendamiento es requerido.", offending_ids=[schedule_id])

    unknown = set(fields) - set(RESCHEDULE_FIELDS)
    if unknown:
        raise ValidationError(f"Campos no soportados: {', '.join(sorted(unknown))}")

    def work(outbox):
        schedule = get_schedule(schedule_id)

        if delivered_schedule_ids([schedule.id]):
            raise PreconditionFailed(
                f"El schedule {schedule.id} ya tiene delivery note; no se puede reagendar.",
                offending_ids=[schedule.id],
            )

        bl_awb = fields.get("bl_awb", schedule.bl_awb)
        existing = _find_duplicate(schedule.job_id, bl_awb, parsed, exclude_id=schedule.id)
        if existing is not None:
            raise ConflictError(
                f"El BL {bl_awb} ya tiene despacho agendado para {parsed.isoformat()}.",
                offending_ids=[existing.id],
            )

        previous = schedule.clearance_date
        schedule.clearance_date = parsed
        schedule.reschedule_reason = reason.strip()
        for name, value in fields.items():
            setattr(schedule, name, value)
        db.session.flush()

        outbox.record(actor, "UPDATE_CLEARANCE_SCHEDULE",
                      f"Rescheduled clearance for Job {schedule.job_id} from {previous.isoformat()} "
                      f"to {parsed.isoformat()}: {schedule.reschedule_reason}",
                      "clearance_schedules", schedule.id)
        return schedule

    return run_in_transaction(work, label="reschedule_clearance")


def _load_consignees() -> List[Consignee]:
    return Consignee.query.order_by(Consignee.name.asc()).all()


def list_clearance_schedules(search: Optional[str] = None, clearance_type: Optional[str] = None,
                             transport_mode: Optional[str] = None, clearance_date=None) -> List[Dict]:
    """
    Schedules activos (sin delivery note) con datos del job.
    `consignee_code` se completa por fuzzy match solo en filas que no lo traen;
    el registro de consignees se carga a lo más una vez y solo si hace falta.
    """
    delivered = select(DeliveryNoteItem.schedule_id).where(DeliveryNoteItem.schedule_id.isnot(None))

    q = (
        db.session.query(ClearanceSchedule, Job)
        .join(Job, ClearanceSchedule.job_id == Job.id)
        .filter(ClearanceSchedule.id.notin_(delivered))
    )

    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(or_(
            ClearanceSchedule.job_id.ilike(pattern),
            Job.customer.ilike(pattern),
            Job.sender_name.ilike(pattern),
            ClearanceSchedule.bl_awb.ilike(pattern),
            ClearanceSchedule.port.ilike(pattern),
        ))

    if clearance_type and clearance_type != "All types":
        q = q.filter(ClearanceSchedule.clearance_type == clearance_type)

    if transport_mode and transport_mode != "All modes":
        q = q.filter(ClearanceSchedule.transport_mode == transport_mode)

    parsed_date = parse_date(clearance_date)
    if parsed_date is not None:
        q = q.filter(ClearanceSchedule.clearance_date == parsed_date)

    q = q.order_by(ClearanceSchedule.clearance_date.asc(), ClearanceSchedule.id.asc())

    registry = LazyCandidates(
        _load_consignees,
        key=lambda c: c.name,
        max_distance=int(current_app.config.get("FUZZY_MATCH_MAX_DISTANCE", 3)),
    )

    rows = []
    for schedule, job in q.all():
        consignee_code = job.consignee_code
        if not consignee_code:
            match = registry.resolve(job.receiver_name)
            consignee_code = match.reference_code if match else None

        rows.append({
            "id": schedule.id,
            "job_id": job.id,
            "bl_awb": schedule.bl_awb,
            "clearance_date": schedule.clearance_date.isoformat(),
            "clearance_type": schedule.clearance_type,
            "port": schedule.port,
            "transport_mode": schedule.transport_mode,
            "clearance_method": schedule.clearance_method,
            "packages": schedule.packages,
            "container_no": schedule.container_no,
            "container_type": schedule.container_type,
            "remarks": schedule.remarks,
            "reschedule_reason": schedule.reschedule_reason,
            "customer": job.customer,
            "exporter": job.sender_name,
            "consignee": job.receiver_name,
            "consignee_code": consignee_code,
            "job_status": job.status,
            "job_progress": job.progress,
        })

    logger.debug(f"Clearance listing rows={len(rows)} registry_loaded={registry.loaded}")
    return rows

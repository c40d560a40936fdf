# app/services/queries.py

from typing import Dict, Iterable, List, Sequence

from app.errors import NotFound, ValidationError
from app.extensions import db
from app.models import ClearanceSchedule, DeliveryNote, DeliveryNoteItem, Job, JobPayment


def require_ids(ids: Iterable, label: str) -> List:
    """
    Limpia una selección de ids: quita vacíos y duplicados, preserva orden.
    Selección vacía -> ValidationError (antes de cualquier escritura).
    """
    seen = set()
    cleaned = []
    for i in ids or []:
        if i is None or (isinstance(i, str) and not i.strip()):
            continue
        key = str(i).strip() if isinstance(i, str) else i
        if key in seen:
            continue
        seen.add(key)
        cleaned.append(key)

    if not cleaned:
        raise ValidationError(f"No se indicaron {label}.")
    return cleaned


def _missing(requested: Sequence, found: Iterable) -> List:
    found_set = {str(f) for f in found}
    return [r for r in requested if str(r) not in found_set]


def get_job(job_id: str, lock: bool = False) -> Job:
    q = Job.query.filter(Job.id == job_id)
    if lock:
        q = q.with_for_update()
    job = q.one_or_none()
    if job is None:
        raise NotFound(f"Job no existe: {job_id}", offending_ids=[job_id])
    return job


def load_jobs(job_ids: Sequence[str]) -> Dict[str, Job]:
    jobs = Job.query.filter(Job.id.in_(list(job_ids))).all() if job_ids else []
    by_id = {j.id: j for j in jobs}
    missing = _missing(job_ids, by_id.keys())
    if missing:
        raise NotFound(f"Jobs no existen: {', '.join(map(str, missing))}", offending_ids=missing)
    return by_id


def load_payments(payment_ids: Sequence[int], lock: bool = False) -> List[JobPayment]:
    """
    Carga los pagos seleccionados (bloqueados si `lock`) en el orden pedido.
    Ids inexistentes -> NotFound con la lista.
    """
    q = JobPayment.query.filter(JobPayment.id.in_(list(payment_ids))).order_by(JobPayment.id.asc())
    if lock:
        q = q.with_for_update()
    payments = q.all()
    by_id = {p.id: p for p in payments}
    missing = _missing(payment_ids, by_id.keys())
    if missing:
        raise NotFound(f"Pagos no existen: {', '.join(map(str, missing))}", offending_ids=missing)
    return [by_id[int(i)] for i in payment_ids]


def load_schedules(schedule_ids: Sequence[int]) -> Dict[int, ClearanceSchedule]:
    if not schedule_ids:
        return {}
    schedules = ClearanceSchedule.query.filter(ClearanceSchedule.id.in_(list(schedule_ids))).all()
    by_id = {s.id: s for s in schedules}
    missing = _missing(schedule_ids, by_id.keys())
    if missing:
        raise NotFound(
            f"Clearance schedules no existen: {', '.join(map(str, missing))}",
            offending_ids=missing,
        )
    return by_id


def get_schedule(schedule_id: int) -> ClearanceSchedule:
    schedule = db.session.get(ClearanceSchedule, schedule_id)
    if schedule is None:
        raise NotFound(f"Clearance schedule no existe: {schedule_id}", offending_ids=[schedule_id])
    return schedule


def get_delivery_note(note_id: str) -> DeliveryNote:
    note = db.session.get(DeliveryNote, note_id)
    if note is None:
        raise NotFound(f"Delivery note no existe: {note_id}", offending_ids=[note_id])
    return note


def delivered_schedule_ids(schedule_ids: Sequence[int] = None) -> set:
    """Schedules ya ligados a algún DeliveryNoteItem."""
    q = db.session.query(DeliveryNoteItem.schedule_id).filter(DeliveryNoteItem.schedule_id.isnot(None))
    if schedule_ids is not None:
        q = q.filter(DeliveryNoteItem.schedule_id.in_(list(schedule_ids)))
    return {sid for (sid,) in q.distinct().all()}


def require_int_ids(ids: Iterable, label: str) -> List[int]:
    cleaned = require_ids(ids, label)
    invalid = []
    result = []
    for i in cleaned:
        try:
            value = int(i)
        except (TypeError, ValueError):
            invalid.append(i)
            continue
        if value not in result:
            result.append(value)
    if invalid:
        raise ValidationError(f"Ids inválidos en {label}: {', '.join(map(str, invalid))}", offending_ids=invalid)
    return result

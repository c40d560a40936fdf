# app/services/delivery_notes.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Dict, Iterable, List, Optional

from sqlalchemy import func, or_

from app.errors import PreconditionFailed, ValidationError
from app.extensions import db
from app.models import DeliveryNote, DeliveryNoteItem, DeliveryNoteStatus, DeliveryNoteVehicle
from app.services import progress, sequences
from app.services.actor import Actor, SYSTEM
from app.services.queries import (
    delivered_schedule_ids, get_delivery_note, load_jobs, load_schedules,
)
from app.services.transactions import run_in_transaction
from app.utils.dates import parse_date
from app.utils.logging import get_logger

logger = get_logger("delivery_notes")


@dataclass
class NoteItem:
    job_id: str
    schedule_id: Optional[int] = None
    shortage: int = 0
    damaged: int = 0
    remarks: Optional[str] = None

    @classmethod
    def from_dict(cls, d: dict) -> "NoteItem":
        schedule_id = d.get("schedule_id")
        return cls(
            job_id=str(d.get("job_id") or "").strip(),
            schedule_id=int(schedule_id) if schedule_id not in (None, "") else None,
            shortage=int(d.get("shortage") or 0),
            damaged=int(d.get("damaged") or 0),
            remarks=d.get("remarks"),
        )


@dataclass
class NoteVehicle:
    vehicle_id: Optional[str] = None
    driver: Optional[str] = None
    driver_contact: Optional[str] = None
    discharge_location: Optional[str] = None

    @classmethod
    def from_dict(cls, d: dict) -> "NoteVehicle":
        return cls(
            vehicle_id=d.get("vehicle_id") or d.get("vehicleId"),
            driver=d.get("driver"),
            driver_contact=d.get("driver_contact") or d.get("driverContact"),
            discharge_location=d.get("discharge_location") or d.get("dischargeLocation"),
        )


def _coerce_items(items: Iterable) -> List[NoteItem]:
    result = []
    for raw in items or []:
        try:
            item = raw if isinstance(raw, NoteItem) else NoteItem.from_dict(raw)
        except (TypeError, ValueError, AttributeError) as e:
            raise ValidationError(f"Item de delivery note inválido: {raw!r} ({e})")
        result.append(item)
    return result


def _coerce_vehicles(vehicles: Iterable) -> List[NoteVehicle]:
    result = []
    for raw in vehicles or []:
        try:
            vehicle = raw if isinstance(raw, NoteVehicle) else NoteVehicle.from_dict(raw)
        except (TypeError, ValueError, AttributeError) as e:
            raise ValidationError(f"Vehículo de delivery note inválido: {raw!r} ({e})")
        result.append(vehicle)
    return result


def _validate_items(items: List[NoteItem]) -> None:
    missing_job = [i for i, item in enumerate(items) if not item.job_id]
    if missing_job:
        raise ValidationError(
            f"Items sin job_id en posiciones: {', '.join(map(str, missing_job))}",
            offending_ids=missing_job,
        )

    seen = set()
    repeated = []
    for item in items:
        if item.schedule_id is None:
            continue
        if item.schedule_id in seen and item.schedule_id not in repeated:
            repeated.append(item.schedule_id)
        seen.add(item.schedule_id)
    if repeated:
        raise ValidationError(
            f"Schedules repetidos en el mismo delivery note: {', '.join(map(str, repeated))}",
            offending_ids=repeated,
        )

    for item in items:
        if item.shortage < 0 or item.damaged < 0:
            raise ValidationError(
                f"Shortage/damaged no pueden ser negativos (job {item.job_id}).", offending_ids=[item.job_id]
            )


def create_delivery_note(
    items: Iterable,
    vehicles: Optional[Iterable] = None,
    loading_date=None,
    unloading_date=None,
    comments: Optional[str] = None,
    actor: Actor = SYSTEM,
    issued_at: Optional[datetime] = None,
) -> DeliveryNote:
    """
    Emite un delivery note en una sola transacción:
      1) id DN-{año}-{mes}-{seq}
      2) snapshot consignee/exporter/vessel del primer job
      3) note + items + vehículos
      4) recompute de progreso de cada job distinto
    Cualquier falla hace rollback completo (no quedan notes parciales).
    Post-commit: un evento de auditoría por job afectado.
    """
    note_items = _coerce_items(items)
    if not note_items:
        raise ValidationError("No se indicaron items para el delivery note.")
    _validate_items(note_items)

    note_vehicles = _coerce_vehicles(vehicles)

    job_ids = list(dict.fromkeys(item.job_id for item in note_items))
    schedule_ids = list(dict.fromkeys(i.schedule_id for i in note_items if i.schedule_id is not None))
    issued_at = issued_at or datetime.utcnow()

    def work(outbox):
        jobs = load_jobs(job_ids)
        schedules = load_schedules(schedule_ids)

        mismatched = [
            item.schedule_id for item in note_items
            if item.schedule_id is not None and schedules[item.schedule_id].job_id != item.job_id
        ]
        if mismatched:
            raise ValidationError(
                f"Schedules que no pertenecen al job indicado: {', '.join(map(str, mismatched))}",
                offending_ids=mismatched,
            )

        already = sorted(delivered_schedule_ids(schedule_ids))
        if already:
            raise PreconditionFailed(
                f"Schedules ya entregados en otro delivery note: {', '.join(map(str, already))}",
                offending_ids=already,
            )

        dn_id = sequences.next_id(sequences.DELIVERY_NOTE_SCOPE, issued_at)
        first_job = jobs[note_items[0].job_id]

        note = DeliveryNote(
            id=dn_id,
            consignee=first_job.receiver_name or "",
            exporter=first_job.sender_name or "",
            vessel_name=first_job.vessel_name,
            status=DeliveryNoteStatus.PENDING.value,
            issued_date=issued_at.date(),
            issued_by=actor.username or "System",
            loading_date=parse_date(loading_date),
            unloading_date=parse_date(unloading_date),
            comments=comments,
            documents=[],
        )
        for item in note_items:
            note.items.append(DeliveryNoteItem(
                job_id=item.job_id,
                schedule_id=item.schedule_id,
                shortage=item.shortage,
                damaged=item.damaged,
                remarks=item.remarks,
            ))
        for v in note_vehicles:
            vehicle_id = (v.vehicle_id or "").strip() or None
            note.vehicles.append(DeliveryNoteVehicle(
                vehicle_id=vehicle_id,
                driver_name=v.driver,
                driver_contact=v.driver_contact,
                discharge_location=v.discharge_location,
            ))

        db.session.add(note)
        # colisión de id se detecta aquí (PK) -> reintento en run_in_transaction
        db.session.flush()

        # jobs bloqueados en orden de id, igual que en los lotes de pago
        for job_id in sorted(job_ids):
            result = progress.recompute_delivery(job_id)
            outbox.record(actor, "DELIVERY_NOTE_CREATED",
                          f"Delivery note {dn_id} issued ({result.delivered}/{result.total} BLs, {result.progress}%)",
                          "SHIPMENT", job_id)
        return note

    note = run_in_transaction(work, label="create_delivery_note")
    logger.info(f"Delivery note creado id={note.id} items={len(note_items)} jobs={job_ids}")
    return note


def update_delivery_note_documents(
    note_id: str,
    documents: Optional[List[dict]] = None,
    unloading_date=None,
    comments: Optional[str] = None,
    mark_delivered: bool = False,
    actor: Actor = SYSTEM,
) -> DeliveryNote:
    """
    Agrega documentos (metadata ya guardada por storage) y actualiza
    fecha de descarga / comentarios. `mark_delivered` pasa el note a Delivered.
    """
    parsed_unloading = parse_date(unloading_date)
    if unloading_date not in (None, "") and parsed_unloading is None:
        raise ValidationError(f"Fecha de descarga inválida: {unloading_date}", offending_ids=[note_id])

    def work(outbox):
        note = get_delivery_note(note_id)

        current = note.documents if isinstance(note.documents, list) else []
        new_docs = list(documents or [])
        # lista nueva para que el cambio en la columna JSON se detecte
        note.documents = current + new_docs

        if parsed_unloading is not None:
            note.unloading_date = parsed_unloading
        if comments is not None:
            note.comments = comments
        if mark_delivered:
            note.status = DeliveryNoteStatus.DELIVERED.value

        db.session.flush()
        outbox.record(actor, "UPDATE_DELIVERY_NOTE",
                      f"Updated delivery note {note.id} (+{len(new_docs)} documents, status {note.status})",
                      "delivery_notes", note.id)
        return note

    return run_in_transaction(work, label="update_delivery_note_documents")


def list_delivery_notes(search: Optional[str] = None, status: Optional[str] = None) -> List[Dict]:
    item_count = (
        db.session.query(func.count(DeliveryNoteItem.id))
        .filter(DeliveryNoteItem.delivery_note_id == DeliveryNote.id)
        .correlate(DeliveryNote)
        .scalar_subquery()
    )
    q = db.session.query(DeliveryNote, item_count.label("item_count"))

    if status and status != "All Statuses":
        q = q.filter(DeliveryNote.status == status)

    if search:
        pattern = f"%{search.strip()}%"
        q = q.filter(or_(
            DeliveryNote.id.ilike(pattern),
            DeliveryNote.consignee.ilike(pattern),
            DeliveryNote.exporter.ilike(pattern),
        ))

    rows = []
    for note, count in q.order_by(DeliveryNote.created_at.desc(), DeliveryNote.id.desc()).all():
        rows.append({
            "id": note.id,
            "consignee": note.consignee,
            "exporter": note.exporter,
            "status": note.status,
            "issued_date": note.issued_date.isoformat(),
            "issued_by": note.issued_by,
            "item_count": count,
            "job_ids": sorted({i.job_id for i in note.items}),
        })
    return rows


def delivery_note_detail(note_id: str) -> Dict:
    note = get_delivery_note(note_id)
    return {
        "id": note.id,
        "consignee": note.consignee,
        "exporter": note.exporter,
        "vessel_name": note.vessel_name,
        "status": note.status,
        "issued_date": note.issued_date.isoformat(),
        "issued_by": note.issued_by,
        "loading_date": note.loading_date.isoformat() if note.loading_date else None,
        "unloading_date": note.unloading_date.isoformat() if note.unloading_date else None,
        "comments": note.comments,
        "documents": note.documents or [],
        "items": [
            {
                "id": i.id,
                "job_id": i.job_id,
                "schedule_id": i.schedule_id,
                "bl_awb": i.schedule.bl_awb if i.schedule else i.job.bl_awb_no,
                "port": i.schedule.port if i.schedule else None,
                "shortage": i.shortage,
                "damaged": i.damaged,
                "remarks": i.remarks,
            }
            for i in note.items
        ],
        "vehicles": [
            {
                "id": v.id,
                "vehicle_id": v.vehicle_id,
                "driver": v.driver_name,
                "driver_contact": v.driver_contact,
                "discharge_location": v.discharge_location,
            }
            for v in note.vehicles
        ],
    }

# tests/test_delivery_notes.py

from datetime import date, datetime

import pytest

from app.errors import NotFound, PreconditionFailed, ValidationError
from app.extensions import db
from app.models import AuditLog, DeliveryNote, Job
from app.services import delivery_notes, progress
from app.services.actor import Actor

MARCH = datetime(2025, 3, 15)
CLERK = Actor(id="u-3", username="ahmed", role="Clearance")


def test_empty_items_are_rejected_before_writing(app):
    with pytest.raises(ValidationError):
        delivery_notes.create_delivery_note([])
    assert DeliveryNote.query.count() == 0


def test_item_without_job_is_rejected(app):
    with pytest.raises(ValidationError) as exc:
        delivery_notes.create_delivery_note([{"job_id": ""}])
    assert exc.value.offending_ids == ["0"]


def test_negative_counts_are_rejected(app, make_job):
    job = make_job()
    with pytest.raises(ValidationError):
        delivery_notes.create_delivery_note([{"job_id": job.id, "shortage": -1}])


def test_unknown_job_or_schedule(app, make_job):
    job = make_job()
    with pytest.raises(NotFound) as exc:
        delivery_notes.create_delivery_note([{"job_id": job.id}, {"job_id": "SH-2099-001"}])
    assert exc.value.offending_ids == ["SH-2099-001"]

    with pytest.raises(NotFound):
        delivery_notes.create_delivery_note([{"job_id": job.id, "schedule_id": 404}])
    assert DeliveryNote.query.count() == 0


def test_schedule_must_belong_to_item_job(app, make_job, make_schedule):
    job_a = make_job()
    job_b = make_job()
    schedule_b = make_schedule(job_b, "MBL-B")

    with pytest.raises(ValidationError):
        delivery_notes.create_delivery_note([{"job_id": job_a.id, "schedule_id": schedule_b.id}])


def test_schedule_cannot_be_delivered_twice(app, make_job, make_bl, make_schedule):
    job = make_job()
    make_bl(job, "MBL-001")
    make_bl(job, "MBL-002")
    schedule = make_schedule(job, "MBL-001")
    delivery_notes.create_delivery_note([{"job_id": job.id, "schedule_id": schedule.id}], issued_at=MARCH)

    with pytest.raises(PreconditionFailed) as exc:
        delivery_notes.create_delivery_note([{"job_id": job.id, "schedule_id": schedule.id}], issued_at=MARCH)
    assert exc.value.offending_ids == [str(schedule.id)]
    assert DeliveryNote.query.count() == 1


def test_note_snapshots_first_job_and_records_audit(app, make_job):
    first = make_job(customer="ABC Trading", sender_name="Global Exports", vessel_name="MSC AURORA")
    second = make_job(customer="Island Retail")

    note = delivery_notes.create_delivery_note(
        [{"job_id": first.id, "shortage": 2}, {"job_id": second.id, "remarks": "wet cartons"}],
        vehicles=[{"vehicleId": " P-1234 ", "driver": "Ali", "driverContact": "7771234"}, {"driver": "Moosa"}],
        loading_date="2025-03-15",
        actor=CLERK,
        issued_at=MARCH,
    )

    detail = delivery_notes.delivery_note_detail(note.id)
    assert detail["id"] == "DN-2025-03-001"
    assert detail["consignee"] == "ABC Trading"
    assert detail["exporter"] == "Global Exports"
    assert detail["vessel_name"] == "MSC AURORA"
    assert detail["status"] == "Pending"
    assert detail["issued_by"] == "ahmed"
    assert detail["loading_date"] == "2025-03-15"
    assert [i["job_id"] for i in detail["items"]] == [first.id, second.id]
    assert [v["vehicle_id"] for v in detail["vehicles"]] == ["P-1234", None]

    # renombrar el job después no cambia el snapshot
    db.session.get(Job, first.id).receiver_name = "Renamed Co"
    db.session.commit()
    assert delivery_notes.delivery_note_detail(note.id)["consignee"] == "ABC Trading"

    actions = AuditLog.query.filter_by(action="DELIVERY_NOTE_CREATED").all()
    assert sorted(a.entity_id for a in actions) == sorted([first.id, second.id])
    assert {a.user_id for a in actions} == {"u-3"}


def test_documents_are_appended_and_note_marked_delivered(app, make_job):
    job = make_job()
    note = delivery_notes.create_delivery_note([{"job_id": job.id}], issued_at=MARCH)

    delivery_notes.update_delivery_note_documents(note.id, documents=[{"name": "pod-1.pdf"}])
    updated = delivery_notes.update_delivery_note_documents(
        note.id, documents=[{"name": "pod-2.jpg"}], unloading_date="2025-03-16",
        comments="received", mark_delivered=True,
    )

    assert [d["name"] for d in updated.documents] == ["pod-1.pdf", "pod-2.jpg"]
    assert updated.unloading_date == date(2025, 3, 16)
    assert updated.status == "Delivered"


def test_documents_update_rejects_bad_date(app, make_job):
    job = make_job()
    note = delivery_notes.create_delivery_note([{"job_id": job.id}], issued_at=MARCH)
    with pytest.raises(ValidationError):
        delivery_notes.update_delivery_note_documents(note.id, unloading_date="not a date")


def test_list_filters_by_status_and_search(app, make_job):
    job = make_job(customer="ABC Trading")
    other = make_job(customer="Island Retail")
    a = delivery_notes.create_delivery_note([{"job_id": job.id}], issued_at=MARCH)
    delivery_notes.create_delivery_note([{"job_id": other.id}], issued_at=MARCH)
    delivery_notes.update_delivery_note_documents(a.id, mark_delivered=True)

    assert len(delivery_notes.list_delivery_notes()) == 2
    delivered = delivery_notes.list_delivery_notes(status="Delivered")
    assert [r["id"] for r in delivered] == [a.id]
    assert delivered[0]["item_count"] == 1

    assert [r["consignee"] for r in delivery_notes.list_delivery_notes(search="island")] == ["Island Retail"]


def test_malformed_vehicle_is_a_validation_error(app, make_job):
    job = make_job()
    with pytest.raises(ValidationError):
        delivery_notes.create_delivery_note([{"job_id": job.id}], vehicles=["P-1"])
    assert DeliveryNote.query.count() == 0


def test_same_schedule_twice_in_one_note_is_rejected(app, make_job, make_schedule):
    job = make_job()
    schedule = make_schedule(job, "MBL-001")

    with pytest.raises(ValidationError) as exc:
        delivery_notes.create_delivery_note([
            {"job_id": job.id, "schedule_id": schedule.id},
            {"job_id": job.id, "schedule_id": schedule.id},
        ])
    assert exc.value.offending_ids == [str(schedule.id)]
    assert DeliveryNote.query.count() == 0


def test_jobs_are_recomputed_in_id_order(app, make_job, monkeypatch):
    first = make_job(job_id="SH-2025-001")
    second = make_job(job_id="SH-2025-002")
    real_recompute = progress.recompute_delivery
    order = []

    def recording(job_id):
        order.append(job_id)
        return real_recompute(job_id)

    monkeypatch.setattr(progress, "recompute_delivery", recording)

    delivery_notes.create_delivery_note([{"job_id": second.id}, {"job_id": first.id}], issued_at=MARCH)
    assert order == ["SH-2025-001", "SH-2025-002"]

# tests/test_jobs.py

from datetime import datetime

import pytest

from app.errors import PreconditionFailed, ValidationError
from app.extensions import db
from app.models import Container, Job
from app.services import delivery_notes, jobs

MARCH = datetime(2025, 3, 15)


def test_register_job_validates_mode(app):
    with pytest.raises(ValidationError):
        jobs.register_job(customer="A", transport_mode="RAIL")

    job = jobs.register_job(customer="A", transport_mode="air", registered_at=MARCH)
    assert job.transport_mode == "AIR"


def test_item_without_schedule_does_not_cover_registered_bls(app, make_job):
    job = make_job()
    jobs.add_bill_of_lading(job.id, master_bl="MBL-001")
    delivery_notes.create_delivery_note([{"job_id": job.id}], issued_at=MARCH)
    # item sin schedule no calza con ningún BL registrado
    assert db.session.get(Job, job.id).progress == 0


def test_add_bl_with_containers(app, make_job):
    job = make_job()
    bl = jobs.add_bill_of_lading(
        job.id, master_bl="MBL-001",
        containers=[{"container_no": "msku 123-4567", "container_type": "40HC", "packages": [{"count": 10}]}],
    )
    container = Container.query.one()
    assert container.bl_id == bl.id
    assert container.container_no == "MSKU1234567"
    assert container.packages == [{"count": 10}]


def test_add_bl_requires_reference(app, make_job):
    with pytest.raises(ValidationError):
        jobs.add_bill_of_lading(make_job().id)


def test_cleared_job_rejects_new_bls(app, make_job):
    job = make_job(status="Cleared", progress=100)
    with pytest.raises(PreconditionFailed):
        jobs.add_bill_of_lading(job.id, master_bl="MBL-LATE")


def test_add_container_checks_bl_owner(app, make_job, make_bl):
    job = make_job()
    other_bl = make_bl(make_job(), "MBL-X")
    with pytest.raises(ValidationError):
        jobs.add_container(job.id, "MSKU0000001", bl_id=other_bl.id)


def test_job_summary(app, make_job, make_bl, make_schedule, make_payment):
    job = make_job(status="Pending")
    make_bl(job, "MBL-001")
    make_bl(job, "MBL-002")
    schedule = make_schedule(job, "MBL-001")
    make_payment(job, status="Paid")
    make_payment(job, status="Pending")
    delivery_notes.create_delivery_note([{"job_id": job.id, "schedule_id": schedule.id}], issued_at=MARCH)

    summary = jobs.get_job_summary(job.id)
    assert summary["progress"] == 50
    assert (summary["delivered_bls"], summary["total_bls"]) == (1, 2)
    assert summary["is_fully_paid"] is False
    assert summary["has_pending_payments"] is True
    assert len(summary["bls"]) == 2

# tests/conftest.py

from datetime import date
from decimal import Decimal

import pytest

from app import create_app
from app.config import Config
from app.extensions import db
from app.models import (
    BillOfLading, ClearanceSchedule, Consignee, Job, JobPayment, JobStatus, PaymentStatus,
)


class TestConfig(Config):
    TESTING = True
    SQLALCHEMY_DATABASE_URI = "sqlite://"
    WTF_CSRF_ENABLED = False
    LOG_LEVEL = "DEBUG"


@pytest.fixture
def app(tmp_path):
    app = create_app(TestConfig)
    app.config["UPLOAD_FOLDER"] = str(tmp_path / "uploads")

    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_job(app):
    counter = {"n": 0}

    def _make(job_id=None, status=JobStatus.NEW.value, progress=0, **fields):
        counter["n"] += 1
        fields.setdefault("customer", f"Customer {counter['n']}")
        fields.setdefault("sender_name", "Global Exports Co")
        fields.setdefault("receiver_name", fields["customer"])
        job = Job(
            id=job_id or f"SH-2025-{counter['n']:03d}",
            status=status,
            progress=progress,
            **fields,
        )
        db.session.add(job)
        db.session.commit()
        return job

    return _make


@pytest.fixture
def make_bl(app):
    def _make(job, master_bl, house_bl=None):
        bl = BillOfLading(job_id=job.id, master_bl=master_bl, house_bl=house_bl)
        db.session.add(bl)
        db.session.commit()
        return bl

    return _make


@pytest.fixture
def make_schedule(app):
    def _make(job, bl_awb, clearance_date=date(2025, 3, 10), **fields):
        schedule = ClearanceSchedule(job_id=job.id, bl_awb=bl_awb, clearance_date=clearance_date, **fields)
        db.session.add(schedule)
        db.session.commit()
        return schedule

    return _make


@pytest.fixture
def make_payment(app):
    def _make(job, status=PaymentStatus.DRAFT.value, payment_type="Customs Duty", amount="100.00",
              paid_by="Company"):
        payment = JobPayment(
            job_id=job.id,
            payment_type=payment_type,
            amount=Decimal(amount),
            paid_by=paid_by,
            status=status,
        )
        db.session.add(payment)
        db.session.commit()
        return payment

    return _make


@pytest.fixture
def make_consignee(app):
    def _make(name, code=None, c_number=None):
        consignee = Consignee(name=name, code=code, c_number=c_number)
        db.session.add(consignee)
        db.session.commit()
        return consignee

    return _make

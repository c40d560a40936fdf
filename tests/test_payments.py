# tests/test_payments.py

from datetime import date, datetime
from decimal import Decimal

import pytest

from app.errors import NotFound, PreconditionFailed, ValidationError
from app.extensions import db
from app.models import Job, JobPayment, JobStatus, Notification, PaymentStatus, PaymentVoucher
from app.services import payments
from app.services.actor import Actor

MARCH = datetime(2025, 3, 20)
ACCOUNTS = Actor(id="u-7", username="maria", role="Accounts")


def _status(payment_id):
    return db.session.get(JobPayment, payment_id).status


def test_create_payment_starts_as_draft(app, make_job):
    job = make_job()
    payment = payments.create_payment(job.id, "Customs Duty", "MVR 1,250.50", "Company", vendor="Customs")
    assert payment.status == "Draft"
    assert payment.amount == Decimal("1250.50")


def test_create_payment_validates_input(app, make_job):
    job = make_job()
    with pytest.raises(ValidationError):
        payments.create_payment(job.id, "Customs Duty", "100", "Somebody")
    with pytest.raises(ValidationError):
        payments.create_payment(job.id, "Customs Duty", "0", "Client")
    with pytest.raises(ValidationError):
        payments.create_payment(job.id, "", "100", "Client")
    with pytest.raises(NotFound):
        payments.create_payment("SH-2099-999", "Customs Duty", "100", "Client")


def test_send_to_accounts_rejects_uncleared_jobs_and_changes_nothing(app, make_job, make_payment):
    cleared = make_job(customer="ABC Trading", status=JobStatus.CLEARED.value, progress=100)
    partial = make_job(customer="Island Retail", status=JobStatus.PENDING.value, progress=50)
    p1 = make_payment(cleared)
    p2 = make_payment(partial)

    with pytest.raises(PreconditionFailed) as exc:
        payments.send_payments_to_accounts([p1.id, p2.id])

    assert exc.value.offending_ids == [partial.id]
    assert "Island Retail" in exc.value.message
    assert cleared.id not in exc.value.message
    assert _status(p1.id) == "Draft"
    assert _status(p2.id) == "Draft"
    assert db.session.get(Job, cleared.id).status == "Cleared"


def test_send_to_accounts_moves_drafts(app, make_job, make_payment):
    job = make_job(status=JobStatus.CLEARED.value, progress=100)
    regular = make_payment(job)
    no_payment = make_payment(job, payment_type="No Payment")
    already_pending = make_payment(job, status=PaymentStatus.PENDING.value)

    result = payments.send_payments_to_accounts([regular.id, no_payment.id, already_pending.id], actor=ACCOUNTS)

    assert result.updated == 2
    assert result.job_ids == [job.id]
    assert _status(regular.id) == "Pending"
    assert _status(no_payment.id) == "No Payment"
    assert _status(already_pending.id) == "Pending"
    assert db.session.get(Job, job.id).status == "Payment"
    assert Notification.query.filter_by(role="Accounts").count() == 1


def test_send_to_accounts_leaves_completed_jobs(app, make_job, make_payment):
    job = make_job(status=JobStatus.COMPLETED.value, progress=100)
    payment = make_payment(job)

    payments.send_payments_to_accounts([payment.id])
    assert db.session.get(Job, job.id).status == "Completed"
    assert _status(payment.id) == "Pending"


def test_empty_selection_is_rejected(app):
    with pytest.raises(ValidationError):
        payments.send_payments_to_accounts([])
    with pytest.raises(ValidationError):
        payments.process_payment_batch([None, ""])


def test_confirmation_flow(app, make_job, make_payment):
    job = make_job(status=JobStatus.PENDING.value)
    payment = make_payment(job)

    payments.request_confirmation([payment.id])
    assert _status(payment.id) == "Confirmation Requested"
    assert db.session.get(Job, job.id).status == "Payment Confirmation"
    assert Notification.query.filter_by(role="Clearance").count() == 1

    payments.confirm_payments([payment.id])
    assert _status(payment.id) == "Confirmed"
    assert db.session.get(Job, job.id).status == "Payment"

    result = payments.process_payment_batch([payment.id], processed_at=MARCH)
    assert result.voucher_no == "VH-2025-001"
    assert _status(payment.id) == "Paid"


def test_confirmation_rejects_completed_jobs(app, make_job, make_payment):
    job = make_job(status=JobStatus.COMPLETED.value, progress=100)
    payment = make_payment(job)

    with pytest.raises(PreconditionFailed) as exc:
        payments.request_confirmation([payment.id])
    assert exc.value.offending_ids == [job.id]
    assert _status(payment.id) == "Draft"


def test_batch_shares_one_voucher(app, make_job, make_payment):
    job_a = make_job(status=JobStatus.PAYMENT.value, progress=100)
    job_b = make_job(status=JobStatus.PAYMENT.value, progress=100)
    pa = make_payment(job_a, status=PaymentStatus.PENDING.value)
    pb = make_payment(job_b, status=PaymentStatus.PENDING.value)
    pb_open = make_payment(job_b, status=PaymentStatus.PENDING.value)

    result = payments.process_payment_batch(
        [pa.id, pb.id], reference="TT-889", payment_date="2025-03-21", payment_mode="Bank Transfer",
        actor=ACCOUNTS, processed_at=MARCH,
    )

    assert result.voucher_no == "VH-2025-001"
    assert result.settled_job_ids == [job_a.id]
    for pid in (pa.id, pb.id):
        paid = db.session.get(JobPayment, pid)
        assert paid.status == "Paid"
        assert paid.voucher_no == "VH-2025-001"
        assert paid.bill_ref_no == "TT-889"
        assert paid.paid_at == date(2025, 3, 21)
        assert paid.processed_by == "u-7"
    assert _status(pb_open.id) == "Pending"

    assert db.session.get(Job, job_a.id).progress == 75
    assert db.session.get(Job, job_b.id).progress == 100

    second = payments.process_payment_batch([pb_open.id], processed_at=MARCH)
    assert second.voucher_no == "VH-2025-002"
    assert db.session.get(Job, job_b.id).progress == 75


def test_batch_rejects_unpayable_payments(app, make_job, make_payment):
    job = make_job(status=JobStatus.PAYMENT.value, progress=100)
    ok = make_payment(job, status=PaymentStatus.PENDING.value)
    draft = make_payment(job)

    with pytest.raises(PreconditionFailed) as exc:
        payments.process_payment_batch([ok.id, draft.id], processed_at=MARCH)
    assert exc.value.offending_ids == [str(draft.id)]
    assert _status(ok.id) == "Pending"
    assert PaymentVoucher.query.count() == 0


def test_batch_is_atomic_when_a_later_step_fails(app, make_job, make_payment, monkeypatch):
    job = make_job(status=JobStatus.PAYMENT.value, progress=100)
    p1 = make_payment(job, status=PaymentStatus.PENDING.value)
    p2 = make_payment(job, status=PaymentStatus.PENDING.value)

    def boom(job_ids, actor=None, outbox=None):
        raise RuntimeError("store failure")

    monkeypatch.setattr(payments.progress, "recompute_payment_completion", boom)

    with pytest.raises(RuntimeError):
        payments.process_payment_batch([p1.id, p2.id], processed_at=MARCH)

    for pid in (p1.id, p2.id):
        payment = db.session.get(JobPayment, pid)
        assert payment.status == "Pending"
        assert payment.voucher_no is None
    assert PaymentVoucher.query.count() == 0
    assert db.session.get(Job, job.id).progress == 100


def test_missing_payment_ids_are_reported(app, make_job, make_payment):
    job = make_job(status=JobStatus.PAYMENT.value, progress=100)
    payment = make_payment(job, status=PaymentStatus.PENDING.value)

    with pytest.raises(NotFound) as exc:
        payments.process_payment_batch([payment.id, 9999], processed_at=MARCH)
    assert exc.value.offending_ids == ["9999"]


def test_draft_no_payment_record_does_not_block_settlement(app, make_job, make_payment):
    job = make_job(status=JobStatus.PAYMENT.value, progress=100)
    pending = make_payment(job, status=PaymentStatus.PENDING.value)
    make_payment(job, payment_type="No Payment")

    result = payments.process_payment_batch([pending.id], processed_at=MARCH)

    assert result.settled_job_ids == [job.id]
    assert db.session.get(Job, job.id).progress == 75

# app/models/job_payment.py

from datetime import datetime
from enum import Enum

from app.extensions import db


class PaymentStatus(str, Enum):
    DRAFT = "Draft"
    PENDING = "Pending"
    CONFIRMATION_REQUESTED = "Confirmation Requested"
    CONFIRMED = "Confirmed"
    PAID = "Paid"
    NO_PAYMENT = "No Payment"  # registro informativo, no se paga


class PayerCategory(str, Enum):
    COMPANY = "Company"
    CLIENT = "Client"


# payment_type que marca un registro sin pago real
NO_PAYMENT_TYPE = "No Payment"

PAYMENT_TRANSITIONS = {
    PaymentStatus.DRAFT: {
        PaymentStatus.PENDING, PaymentStatus.CONFIRMATION_REQUESTED, PaymentStatus.NO_PAYMENT,
    },
    PaymentStatus.PENDING: {PaymentStatus.CONFIRMATION_REQUESTED, PaymentStatus.PAID},
    PaymentStatus.CONFIRMATION_REQUESTED: {PaymentStatus.CONFIRMED},
    PaymentStatus.CONFIRMED: {PaymentStatus.PAID},
    PaymentStatus.PAID: set(),
    PaymentStatus.NO_PAYMENT: set(),
}


class PaymentVoucher(db.Model):
    __tablename__ = "payment_vouchers"

    voucher_no = db.Column(db.String(20), primary_key=True)  # VH-2025-001

    reference = db.Column(db.String(100))
    payment_date = db.Column(db.Date)
    payment_mode = db.Column(db.String(50))
    comments = db.Column(db.Text)
    processed_by = db.Column(db.String(100))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    payments = db.relationship("JobPayment", backref="voucher", lazy=True)


class JobPayment(db.Model):
    __tablename__ = "job_payments"

    id = db.Column(db.Integer, primary_key=True)
    job_id = db.Column(db.String(20), db.ForeignKey("jobs.id"), nullable=False, index=True)

    payment_type = db.Column(db.String(100), nullable=False)
    vendor = db.Column(db.String(255))
    amount = db.Column(db.Numeric(14, 2), nullable=False, default=0)
    paid_by = db.Column(db.String(20), nullable=False)  # Company / Client
    bill_ref_no = db.Column(db.String(100))

    status = db.Column(db.String(30), nullable=False, default=PaymentStatus.DRAFT.value, index=True)

    # solo se asigna al pasar a Paid
    voucher_no = db.Column(
        db.String(20), db.ForeignKey("payment_vouchers.voucher_no"), index=True
    )
    payment_mode = db.Column(db.String(50))
    paid_at = db.Column(db.Date)
    comments = db.Column(db.Text)

    requested_by = db.Column(db.String(100))
    processed_by = db.Column(db.String(100))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @property
    def payment_status(self) -> PaymentStatus:
        return PaymentStatus(self.status)

    @property
    def is_payable(self) -> bool:
        # tipo "No Payment" es informativo aunque siga en Draft
        return (
            self.status != PaymentStatus.NO_PAYMENT.value
            and self.payment_type != NO_PAYMENT_TYPE
        )

    def can_transition(self, target: PaymentStatus) -> bool:
        return target in PAYMENT_TRANSITIONS[self.payment_status]

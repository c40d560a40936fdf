# app/models/job.py

from datetime import datetime
from enum import Enum

from app.errors import InvalidTransition
from app.extensions import db


class JobStatus(str, Enum):
    NEW = "New"
    PENDING = "Pending"
    PAYMENT_CONFIRMATION = "Payment Confirmation"
    PAYMENT = "Payment"
    CLEARED = "Cleared"
    COMPLETED = "Completed"


# Cleared y Payment son ejes independientes: se puede ir de uno a otro.
# Completed es manual (fuera del core) y terminal.
JOB_TRANSITIONS = {
    JobStatus.NEW: {
        JobStatus.PENDING, JobStatus.PAYMENT_CONFIRMATION, JobStatus.PAYMENT, JobStatus.CLEARED,
    },
    JobStatus.PENDING: {
        JobStatus.PAYMENT_CONFIRMATION, JobStatus.PAYMENT, JobStatus.CLEARED,
    },
    JobStatus.PAYMENT_CONFIRMATION: {
        JobStatus.PAYMENT, JobStatus.CLEARED,
    },
    JobStatus.PAYMENT: {
        JobStatus.PAYMENT_CONFIRMATION, JobStatus.CLEARED, JobStatus.COMPLETED,
    },
    JobStatus.CLEARED: {
        JobStatus.PAYMENT_CONFIRMATION, JobStatus.PAYMENT, JobStatus.COMPLETED,
    },
    JobStatus.COMPLETED: set(),
}


class Job(db.Model):
    __tablename__ = "jobs"
    __table_args__ = (
        db.CheckConstraint("progress >= 0 AND progress <= 100", name="ck_jobs_progress_range"),
    )

    id = db.Column(db.String(20), primary_key=True)  # SH-2025-001
    status = db.Column(db.String(30), nullable=False, default=JobStatus.NEW.value, index=True)

    # Derivado: solo lo escribe el reconciliador, nunca es input
    progress = db.Column(db.Integer, nullable=False, default=0)

    customer = db.Column(db.String(255))
    sender_name = db.Column(db.String(255))    # exporter
    receiver_name = db.Column(db.String(255))  # consignee (texto libre)
    consignee_code = db.Column(db.String(100))  # si viene del registro; si no, se resuelve por fuzzy
    bl_awb_no = db.Column(db.String(100))
    transport_mode = db.Column(db.String(10), nullable=False, default="SEA")
    vessel_name = db.Column(db.String(255))

    created_by = db.Column(db.String(100))
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    bills_of_lading = db.relationship(
        "BillOfLading", backref="job", lazy=True, order_by="BillOfLading.id"
    )
    containers = db.relationship("Container", backref="job", lazy=True, order_by="Container.id")
    clearance_schedules = db.relationship(
        "ClearanceSchedule", backref="job", lazy=True, order_by="ClearanceSchedule.clearance_date"
    )
    payments = db.relationship("JobPayment", backref="job", lazy=True, order_by="JobPayment.id")

    @property
    def job_status(self) -> JobStatus:
        return JobStatus(self.status)

    def can_transition(self, target: JobStatus) -> bool:
        current = self.job_status
        return target == current or target in JOB_TRANSITIONS[current]

    def transition_to(self, target: JobStatus) -> bool:
        """
        Aplica la transición si es válida. Retorna True si cambió el estado.
        Misma transición -> no-op. Transición ilegal -> InvalidTransition.
        """
        current = self.job_status
        if target == current:
            return False
        if target not in JOB_TRANSITIONS[current]:
            raise InvalidTransition(
                f"Job {self.id}: transición no permitida {current.value} -> {target.value}",
                offending_ids=[self.id],
            )
        self.status = target.value
        return True

    @property
    def is_cleared(self) -> bool:
        return self.progress >= 100 or self.status == JobStatus.CLEARED.value

    def __repr__(self):
        return f"<Job {self.id} status={self.status} progress={self.progress}>"

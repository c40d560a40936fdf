# app/models/__init__.py

from .job import Job, JobStatus, JOB_TRANSITIONS
from .bill_of_lading import BillOfLading, Container
from .clearance_schedule import ClearanceSchedule
from .delivery_note import DeliveryNote, DeliveryNoteItem, DeliveryNoteVehicle, DeliveryNoteStatus
from .job_payment import (
    JobPayment, PaymentVoucher, PaymentStatus, PayerCategory,
    PAYMENT_TRANSITIONS, NO_PAYMENT_TYPE,
)
from .consignee import Consignee
from .audit_log import AuditLog, Notification

# app/models/delivery_note.py

from datetime import datetime
from enum import Enum

from app.extensions import db


class DeliveryNoteStatus(str, Enum):
    PENDING = "Pending"
    DELIVERED = "Delivered"


class DeliveryNote(db.Model):
    __tablename__ = "delivery_notes"

    id = db.Column(db.String(20), primary_key=True)  # DN-2025-03-001

    # snapshot de contrapartes al momento de emitir (no FK)
    consignee = db.Column(db.String(255))
    exporter = db.Column(db.String(255))
    vessel_name = db.Column(db.String(255))

    status = db.Column(db.String(20), nullable=False, default=DeliveryNoteStatus.PENDING.value)
    issued_date = db.Column(db.Date, nullable=False)
    issued_by = db.Column(db.String(100), nullable=False, default="System")
    loading_date = db.Column(db.Date)
    unloading_date = db.Column(db.Date)
    comments = db.Column(db.Text)

    # [{"name", "url", "uploaded_at", "type", "size", "hash"}]
    documents = db.Column(db.JSON, nullable=False, default=list)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    items = db.relationship(
        "DeliveryNoteItem", backref="delivery_note", lazy=True, cascade="all, delete-orphan"
    )
    vehicles = db.relationship(
        "DeliveryNoteVehicle", backref="delivery_note", lazy=True, cascade="all, delete-orphan"
    )


class DeliveryNoteItem(db.Model):
    __tablename__ = "delivery_note_items"

    id = db.Column(db.Integer, primary_key=True)
    delivery_note_id = db.Column(
        db.String(20), db.ForeignKey("delivery_notes.id"), nullable=False, index=True
    )
    job_id = db.Column(db.String(20), db.ForeignKey("jobs.id"), nullable=False, index=True)
    schedule_id = db.Column(db.Integer, db.ForeignKey("clearance_schedules.id"), index=True)

    shortage = db.Column(db.Integer, nullable=False, default=0)
    damaged = db.Column(db.Integer, nullable=False, default=0)
    remarks = db.Column(db.Text)

    schedule = db.relationship("ClearanceSchedule", lazy=True)
    job = db.relationship("Job", lazy=True)


class DeliveryNoteVehicle(db.Model):
    __tablename__ = "delivery_note_vehicles"

    id = db.Column(db.Integer, primary_key=True)
    delivery_note_id = db.Column(
        db.String(20), db.ForeignKey("delivery_notes.id"), nullable=False, index=True
    )

    vehicle_id = db.Column(db.String(50))  # registro del vehículo; NULL si no viene
    driver_name = db.Column(db.String(255))
    driver_contact = db.Column(db.String(50))
    discharge_location = db.Column(db.String(255))

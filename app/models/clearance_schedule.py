# app/models/clearance_schedule.py

from datetime import datetime

from app.extensions import db


class ClearanceSchedule(db.Model):
    __tablename__ = "clearance_schedules"
    __table_args__ = (
        # un BL no se agenda dos veces para la misma fecha
        db.UniqueConstraint("job_id", "bl_awb", "clearance_date", name="uq_clearance_bl_date"),
    )

    id = db.Column(db.Integer, primary_key=True)
    job_id = db.Column(db.String(20), db.ForeignKey("jobs.id"), nullable=False, index=True)

    bl_awb = db.Column(db.String(100))  # referencia textual al BL
    clearance_date = db.Column(db.Date, nullable=False, index=True)
    clearance_type = db.Column(db.String(50))
    port = db.Column(db.String(120))
    transport_mode = db.Column(db.String(10))
    clearance_method = db.Column(db.String(50))
    packages = db.Column(db.String(100))
    container_no = db.Column(db.String(20))
    container_type = db.Column(db.String(30))
    remarks = db.Column(db.Text)

    reschedule_reason = db.Column(db.Text)
    delivery_contact_name = db.Column(db.String(255))
    delivery_contact_phone = db.Column(db.String(50))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

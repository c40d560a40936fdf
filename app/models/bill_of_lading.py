# app/models/bill_of_lading.py

from datetime import datetime

from app.extensions import db


class BillOfLading(db.Model):
    __tablename__ = "bills_of_lading"

    id = db.Column(db.Integer, primary_key=True)
    job_id = db.Column(db.String(20), db.ForeignKey("jobs.id"), nullable=False, index=True)

    master_bl = db.Column(db.String(100), index=True)
    house_bl = db.Column(db.String(100), index=True)
    vessel = db.Column(db.String(255))
    port_of_loading = db.Column(db.String(120))
    port_of_discharge = db.Column(db.String(120))
    delivery_agent = db.Column(db.String(255))
    packages = db.Column(db.String(100))

    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    containers = db.relationship("Container", backref="bill_of_lading", lazy=True)

    @property
    def references(self):
        return [r for r in (self.master_bl, self.house_bl) if r]


class Container(db.Model):
    __tablename__ = "containers"

    id = db.Column(db.Integer, primary_key=True)
    job_id = db.Column(db.String(20), db.ForeignKey("jobs.id"), nullable=False, index=True)
    bl_id = db.Column(db.Integer, db.ForeignKey("bills_of_lading.id"), index=True)

    container_no = db.Column(db.String(20), index=True)
    container_type = db.Column(db.String(30))

    # lista de paquetes: [{"count": 10, "type": "PALLET", "weight": "1200"}]
    packages = db.Column(db.JSON, nullable=False, default=list)

    unloaded_date = db.Column(db.Date)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

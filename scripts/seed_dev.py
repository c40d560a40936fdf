# scripts/seed_dev.py

from app import create_app
from app.extensions import db
from app.models import Consignee
from app.services import clearance, jobs

app = create_app()

with app.app_context():
    db.create_all()

    if not Consignee.query.first():
        db.session.add_all([
            Consignee(name="ABC Trading", code="C-0001"),
            Consignee(name="Island Retail Pvt Ltd", c_number="C-0457"),
        ])
        db.session.commit()

    j = jobs.register_job(
        customer="ABC Trading Pte Ltd",
        sender_name="Global Exports Co",
        receiver_name="ABC Trading Pte Ltd",
        bl_awb_no="MSCU1234567",
        vessel_name="MSC AURORA",
    )
    jobs.add_bill_of_lading(j.id, master_bl="MSCU1234567", vessel="MSC AURORA")
    jobs.add_bill_of_lading(j.id, master_bl="MSCU7654321", vessel="MSC AURORA")
    clearance.schedule_clearance(j.id, "2025-03-10", bl_awb="MSCU1234567", port="Male")
    print("Job creado:", j.id)

# app/models/consignee.py

from app.extensions import db


class Consignee(db.Model):
    """
    Directorio canónico. Se liga a los campos de texto libre (receiver_name)
    solo por fuzzy match, nunca por FK.
    """

    __tablename__ = "consignees"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(255), nullable=False, index=True)
    code = db.Column(db.String(100))
    c_number = db.Column(db.String(100))

    email = db.Column(db.String(255))
    phone = db.Column(db.String(50))
    address = db.Column(db.Text)

    @property
    def reference_code(self):
        return self.code or self.c_number

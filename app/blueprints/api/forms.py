# app/blueprints/api/forms.py

from flask_wtf import FlaskForm
from flask_wtf.file import FileAllowed, MultipleFileField
from wtforms import BooleanField, DateField, Field, IntegerField, StringField, TextAreaField
from wtforms.validators import AnyOf, DataRequired, Length, Optional

from app.config import Config
from app.models import PayerCategory

# La API recibe JSON: FlaskForm lo envuelve como formdata (listas -> multi-valor).
# Sin CSRF: la autenticación la resuelve el gateway.


class ListField(Field):
    """Campo que conserva todos los valores recibidos (ids, items, vehículos)."""

    def process_formdata(self, valuelist):
        self.data = list(valuelist)

    def _value(self):
        return self.data or []


class ApiForm(FlaskForm):
    class Meta:
        csrf = False


class JobForm(ApiForm):
    customer = StringField("Customer", validators=[Optional(), Length(max=255)])
    sender_name = StringField("Exporter", validators=[Optional(), Length(max=255)])
    receiver_name = StringField("Consignee", validators=[DataRequired(), Length(max=255)])
    consignee_code = StringField("Consignee code", validators=[Optional(), Length(max=100)])
    bl_awb_no = StringField("BL/AWB", validators=[Optional(), Length(max=100)])
    transport_mode = StringField("Mode", default="SEA", validators=[Optional(), AnyOf(["SEA", "AIR"])])
    vessel_name = StringField("Vessel", validators=[Optional(), Length(max=255)])


class BillOfLadingForm(ApiForm):
    master_bl = StringField("Master BL", validators=[Optional(), Length(max=100)])
    house_bl = StringField("House BL", validators=[Optional(), Length(max=100)])
    vessel = StringField("Vessel", validators=[Optional(), Length(max=255)])
    port_of_loading = StringField("POL", validators=[Optional()])
    port_of_discharge = StringField("POD", validators=[Optional()])
    delivery_agent = StringField("Delivery agent", validators=[Optional()])
    packages = StringField("Packages", validators=[Optional()])
    containers = ListField("Containers")


class ContainerForm(ApiForm):
    container_no = StringField("Container", validators=[DataRequired(), Length(max=20)])
    container_type = StringField("Type", validators=[Optional(), Length(max=30)])
    bl_id = IntegerField("BL", validators=[Optional()])
    packages = ListField("Packages")


class ScheduleFieldsForm(ApiForm):
    clearance_date = DateField("Date", validators=[DataRequired()])
    bl_awb = StringField("BL/AWB", validators=[Optional(), Length(max=100)])
    clearance_type = StringField("Type", validators=[Optional()])
    port = StringField("Port", validators=[Optional()])
    transport_mode = StringField("Mode", validators=[Optional()])
    clearance_method = StringField("Method", validators=[Optional()])
    packages = StringField("Packages", validators=[Optional()])
    container_no = StringField("Container", validators=[Optional()])
    container_type = StringField("Container type", validators=[Optional()])
    remarks = TextAreaField("Remarks", validators=[Optional()])
    delivery_contact_name = StringField("Contact", validators=[Optional()])
    delivery_contact_phone = StringField("Phone", validators=[Optional()])

    # campos que viajan como **fields al servicio
    EXTRA_FIELDS = (
        "clearance_type", "port", "transport_mode", "clearance_method", "packages",
        "container_no", "container_type", "remarks", "delivery_contact_name", "delivery_contact_phone",
    )

    def extra_fields(self) -> dict:
        return {
            name: getattr(self, name).data
            for name in self.EXTRA_FIELDS
            if getattr(self, name).data not in (None, "")
        }


class ClearanceScheduleForm(ScheduleFieldsForm):
    job_id = StringField("Job", validators=[DataRequired()])


class RescheduleForm(ScheduleFieldsForm):
    reason = TextAreaField("Reason", validators=[DataRequired()])

    EXTRA_FIELDS = ScheduleFieldsForm.EXTRA_FIELDS + ("bl_awb",)


class DeliveryNoteForm(ApiForm):
    items = ListField("Items")
    vehicles = ListField("Vehicles")
    loading_date = DateField("Loading date", validators=[Optional()])
    unloading_date = DateField("Unloading date", validators=[Optional()])
    comments = TextAreaField("Comments", validators=[Optional()])


class DeliveryNoteDocumentsForm(ApiForm):
    documents = MultipleFileField(
        "Documents",
        validators=[FileAllowed(Config.ALLOWED_DOCUMENT_EXTENSIONS, "Tipo de archivo no permitido")],
    )
    unloading_date = DateField("Unloading date", validators=[Optional()])
    comments = TextAreaField("Comments", validators=[Optional()])
    mark_delivered = BooleanField("Delivered")


class PaymentForm(ApiForm):
    job_id = StringField("Job", validators=[DataRequired()])
    payment_type = StringField("Type", validators=[DataRequired(), Length(max=100)])
    vendor = StringField("Vendor", validators=[Optional(), Length(max=255)])
    amount = StringField("Amount", validators=[DataRequired()])
    paid_by = StringField("Paid by", validators=[DataRequired(), AnyOf([c.value for c in PayerCategory])])
    bill_ref_no = StringField("Bill ref", validators=[Optional(), Length(max=100)])


class PaymentSelectionForm(ApiForm):
    payment_ids = ListField("Payments")


class PaymentBatchForm(PaymentSelectionForm):
    reference = StringField("Reference", validators=[Optional(), Length(max=100)])
    payment_date = DateField("Payment date", validators=[Optional()])
    payment_mode = StringField("Mode", validators=[Optional(), Length(max=50)])
    comments = TextAreaField("Comments", validators=[Optional()])

# app/blueprints/api/routes.py

from dataclasses import asdict

from flask import Blueprint, current_app, jsonify, request

from app.blueprints.api.forms import (
    BillOfLadingForm, ClearanceScheduleForm, ContainerForm, DeliveryNoteDocumentsForm,
    DeliveryNoteForm, JobForm, PaymentBatchForm, PaymentForm, PaymentSelectionForm, RescheduleForm,
)
from app.errors import ValidationError
from app.services import clearance, delivery_notes, jobs, payments
from app.services.actor import Actor
from app.services.queries import get_delivery_note
from app.services.storage import save_delivery_note_document
from app.utils.logging import get_logger

api_bp = Blueprint("api", __name__)

logger = get_logger("api")


def current_actor() -> Actor:
    """Identidad que entrega el gateway en headers; sin headers -> System."""
    return Actor(
        id=request.headers.get("X-User-Id") or None,
        username=request.headers.get("X-User-Name") or "System",
        role=request.headers.get("X-User-Role") or "",
    )


def validated(form):
    if not form.validate_on_submit():
        fields = ", ".join(f"{name}: {'; '.join(map(str, errs))}" for name, errs in form.errors.items())
        raise ValidationError(f"Formulario inválido. {fields}", offending_ids=list(form.errors))
    return form


def job_to_dict(job) -> dict:
    return {
        "id": job.id,
        "status": job.status,
        "progress": job.progress,
        "customer": job.customer,
        "sender_name": job.sender_name,
        "receiver_name": job.receiver_name,
        "consignee_code": job.consignee_code,
        "bl_awb_no": job.bl_awb_no,
        "transport_mode": job.transport_mode,
        "vessel_name": job.vessel_name,
    }


def schedule_to_dict(schedule) -> dict:
    return {
        "id": schedule.id,
        "job_id": schedule.job_id,
        "bl_awb": schedule.bl_awb,
        "clearance_date": schedule.clearance_date.isoformat(),
        "clearance_type": schedule.clearance_type,
        "port": schedule.port,
        "reschedule_reason": schedule.reschedule_reason,
    }


def payment_to_dict(payment) -> dict:
    return {
        "id": payment.id,
        "job_id": payment.job_id,
        "payment_type": payment.payment_type,
        "vendor": payment.vendor,
        "amount": str(payment.amount),
        "paid_by": payment.paid_by,
        "bill_ref_no": payment.bill_ref_no,
        "status": payment.status,
        "voucher_no": payment.voucher_no,
    }


@api_bp.route("/ping")
def ping():
    return jsonify({"status": "ok"})


# -------------------------
# Jobs
# -------------------------
@api_bp.route("/jobs", methods=["POST"])
def create_job():
    form = validated(JobForm())
    job = jobs.register_job(
        customer=form.customer.data,
        sender_name=form.sender_name.data,
        receiver_name=form.receiver_name.data,
        bl_awb_no=form.bl_awb_no.data,
        transport_mode=form.transport_mode.data or "SEA",
        vessel_name=form.vessel_name.data,
        consignee_code=form.consignee_code.data,
        actor=current_actor(),
    )
    return jsonify(job_to_dict(job)), 201


@api_bp.route("/jobs/<job_id>")
def job_summary(job_id):
    return jsonify(jobs.get_job_summary(job_id))


@api_bp.route("/jobs/<job_id>/bls", methods=["POST"])
def add_bl(job_id):
    form = validated(BillOfLadingForm())
    bl = jobs.add_bill_of_lading(
        job_id,
        master_bl=form.master_bl.data,
        house_bl=form.house_bl.data,
        vessel=form.vessel.data,
        port_of_loading=form.port_of_loading.data,
        port_of_discharge=form.port_of_discharge.data,
        delivery_agent=form.delivery_agent.data,
        packages=form.packages.data,
        containers=form.containers.data or [],
        actor=current_actor(),
    )
    return jsonify({"id": bl.id, "job_id": bl.job_id, "master_bl": bl.master_bl, "house_bl": bl.house_bl}), 201


@api_bp.route("/jobs/<job_id>/containers", methods=["POST"])
def add_container(job_id):
    form = validated(ContainerForm())
    container = jobs.add_container(
        job_id,
        container_no=form.container_no.data,
        container_type=form.container_type.data,
        packages=form.packages.data or [],
        bl_id=form.bl_id.data,
        actor=current_actor(),
    )
    return jsonify({"id": container.id, "job_id": container.job_id, "container_no": container.container_no}), 201


# -------------------------
# Clearance
# -------------------------
@api_bp.route("/clearance-schedules", methods=["GET"])
def list_schedules():
    rows = clearance.list_clearance_schedules(
        search=request.args.get("search"),
        clearance_type=request.args.get("type"),
        transport_mode=request.args.get("transportMode"),
        clearance_date=request.args.get("date"),
    )
    return jsonify(rows)


@api_bp.route("/clearance-schedules", methods=["POST"])
def create_schedule():
    form = validated(ClearanceScheduleForm())
    schedule = clearance.schedule_clearance(
        form.job_id.data,
        form.clearance_date.data,
        bl_awb=form.bl_awb.data or None,
        actor=current_actor(),
        **form.extra_fields(),
    )
    return jsonify(schedule_to_dict(schedule)), 201


@api_bp.route("/clearance-schedules/<int:schedule_id>/reschedule", methods=["PUT"])
def reschedule(schedule_id):
    form = validated(RescheduleForm())
    schedule = clearance.reschedule_clearance(
        schedule_id,
        form.clearance_date.data,
        form.reason.data,
        actor=current_actor(),
        **form.extra_fields(),
    )
    return jsonify(schedule_to_dict(schedule))


# -------------------------
# Delivery notes
# -------------------------
@api_bp.route("/delivery-notes", methods=["GET"])
def list_notes():
    return jsonify(delivery_notes.list_delivery_notes(
        search=request.args.get("search"),
        status=request.args.get("status"),
    ))


@api_bp.route("/delivery-notes/<note_id>", methods=["GET"])
def note_detail(note_id):
    return jsonify(delivery_notes.delivery_note_detail(note_id))


@api_bp.route("/delivery-notes", methods=["POST"])
def create_note():
    form = validated(DeliveryNoteForm())
    note = delivery_notes.create_delivery_note(
        items=form.items.data or [],
        vehicles=form.vehicles.data or [],
        loading_date=form.loading_date.data,
        unloading_date=form.unloading_date.data,
        comments=form.comments.data,
        actor=current_actor(),
    )
    return jsonify({"id": note.id, "status": note.status}), 201


@api_bp.route("/delivery-notes/<note_id>/documents", methods=["PUT"])
def upload_note_documents(note_id):
    form = validated(DeliveryNoteDocumentsForm())
    get_delivery_note(note_id)

    base_upload = current_app.config.get("UPLOAD_FOLDER", "uploads")
    documents = []
    for file_storage in form.documents.data or []:
        try:
            documents.append(save_delivery_note_document(file_storage, base_upload, note_id))
        except ValueError as e:
            raise ValidationError(str(e), offending_ids=[note_id])

    note = delivery_notes.update_delivery_note_documents(
        note_id,
        documents=documents,
        unloading_date=form.unloading_date.data,
        comments=form.comments.data,
        mark_delivered=form.mark_delivered.data,
        actor=current_actor(),
    )
    logger.info(f"Delivery note {note.id}: {len(documents)} documento(s) subidos")
    return jsonify({"id": note.id, "status": note.status, "documents": note.documents or []})


# -------------------------
# Payments
# -------------------------
@api_bp.route("/payments", methods=["POST"])
def create_payment():
    form = validated(PaymentForm())
    payment = payments.create_payment(
        job_id=form.job_id.data,
        payment_type=form.payment_type.data,
        amount=form.amount.data,
        paid_by=form.paid_by.data,
        vendor=form.vendor.data,
        bill_ref_no=form.bill_ref_no.data,
        actor=current_actor(),
    )
    return jsonify(payment_to_dict(payment)), 201


@api_bp.route("/payments/request-confirmation", methods=["POST"])
def request_confirmation():
    form = validated(PaymentSelectionForm())
    result = payments.request_confirmation(form.payment_ids.data or [], actor=current_actor())
    return jsonify(asdict(result))


@api_bp.route("/payments/confirm", methods=["POST"])
def confirm_payments():
    form = validated(PaymentSelectionForm())
    result = payments.confirm_payments(form.payment_ids.data or [], actor=current_actor())
    return jsonify(asdict(result))


@api_bp.route("/payments/send-to-accounts", methods=["POST"])
def send_to_accounts():
    form = validated(PaymentSelectionForm())
    result = payments.send_payments_to_accounts(form.payment_ids.data or [], actor=current_actor())
    return jsonify(asdict(result))


@api_bp.route("/payments/process-batch", methods=["POST"])
def process_batch():
    form = validated(PaymentBatchForm())
    result = payments.process_payment_batch(
        form.payment_ids.data or [],
        reference=form.reference.data,
        payment_date=form.payment_date.data,
        payment_mode=form.payment_mode.data,
        comments=form.comments.data,
        actor=current_actor(),
    )
    return jsonify(asdict(result))

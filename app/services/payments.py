# app/services/payments.py

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional

from app.errors import PreconditionFailed, ValidationError
from app.extensions import db
from app.models import (
    Job, JobPayment, JobStatus, NO_PAYMENT_TYPE, PayerCategory, PaymentStatus, PaymentVoucher,
)
from app.services import progress, sequences
from app.services.actor import Actor, SYSTEM
from app.services.audit import ROLE_ACCOUNTS, ROLE_CLEARANCE
from app.services.queries import get_job, load_payments, require_int_ids
from app.services.transactions import run_in_transaction
from app.utils.dates import parse_date
from app.utils.logging import get_logger
from app.utils.money import quantize_money

logger = get_logger("payments")


@dataclass
class BatchResult:
    payment_ids: List[int]
    job_ids: List[str]
    updated: int
    voucher_no: Optional[str] = None
    settled_job_ids: List[str] = field(default_factory=list)


def _jobs_of(payments: Iterable[JobPayment]) -> Dict[str, Job]:
    jobs: Dict[str, Job] = {}
    for p in payments:
        jobs.setdefault(p.job_id, p.job)
    return dict(sorted(jobs.items()))


def _require_payment_transition(payments: List[JobPayment], target: PaymentStatus) -> None:
    invalid = [p for p in payments if not p.can_transition(target)]
    if invalid:
        detail = ", ".join(f"{p.id} ({p.status})" for p in invalid)
        raise PreconditionFailed(
            f"Pagos que no pueden pasar a {target.value}: {detail}",
            offending_ids=[p.id for p in invalid],
        )


def _require_job_transition(jobs: Dict[str, Job], target: JobStatus) -> None:
    invalid = [j for j in jobs.values() if not j.can_transition(target)]
    if invalid:
        detail = ", ".join(f"{j.id} ({j.status})" for j in invalid)
        raise PreconditionFailed(
            f"Jobs que no pueden pasar a {target.value}: {detail}",
            offending_ids=[j.id for j in invalid],
        )


def create_payment(job_id: str, payment_type: str, amount, paid_by: str, vendor: Optional[str] = None,
                   bill_ref_no: Optional[str] = None, actor: Actor = SYSTEM) -> JobPayment:
    """Registra un pedido de pago en Draft."""
    missing = [name for name, value in (
        ("job_id", job_id), ("payment_type", payment_type), ("paid_by", paid_by),
    ) if not value]
    if missing:
        raise ValidationError(f"Campos requeridos faltantes: {', '.join(missing)}")

    try:
        payer = PayerCategory(paid_by)
    except ValueError:
        raise ValidationError(f"paid_by inválido: {paid_by} (Company / Client)")

    value = quantize_money(amount)
    if payment_type != NO_PAYMENT_TYPE and value <= Decimal("0"):
        raise ValidationError(f"Monto inválido: {amount}")

    def work(outbox):
        job = get_job(job_id)
        payment = JobPayment(
            job_id=job.id,
            payment_type=payment_type,
            vendor=vendor,
            amount=value,
            paid_by=payer.value,
            bill_ref_no=bill_ref_no,
            status=PaymentStatus.DRAFT.value,
            requested_by=actor.id,
        )
        db.session.add(payment)
        db.session.flush()
        outbox.record(actor, "PAYMENT_REQUEST", f"Payment Request created ({payment_type} {value})", "SHIPMENT", job.id)
        return payment

    return run_in_transaction(work, label="create_payment")


def request_confirmation(payment_ids: Iterable, actor: Actor = SYSTEM) -> BatchResult:
    """
    Draft/Pending -> Confirmation Requested; jobs -> Payment Confirmation.
    Todo o nada. Post-commit: notificación al rol de clearance.
    """
    ids = require_int_ids(payment_ids, "pagos")

    def work(outbox):
        payments = load_payments(ids, lock=True)
        jobs = _jobs_of(payments)

        _require_payment_transition(payments, PaymentStatus.CONFIRMATION_REQUESTED)
        _require_job_transition(jobs, JobStatus.PAYMENT_CONFIRMATION)

        for p in payments:
            p.status = PaymentStatus.CONFIRMATION_REQUESTED.value
        for job in jobs.values():
            job.transition_to(JobStatus.PAYMENT_CONFIRMATION)
            outbox.record(actor, "PAYMENT_CONFIRMATION_REQUESTED",
                          "Payment confirmation requested", "SHIPMENT", job.id)
        db.session.flush()

        outbox.notify(ROLE_CLEARANCE, "Payment Confirmation Requested",
                      f"{len(payments)} payment(s) waiting clearance confirmation "
                      f"for jobs {', '.join(jobs)}", link="/payment-requests")
        return BatchResult(payment_ids=ids, job_ids=list(jobs), updated=len(payments))

    return run_in_transaction(work, label="request_confirmation")


def confirm_payments(payment_ids: Iterable, actor: Actor = SYSTEM) -> BatchResult:
    """Confirmation Requested -> Confirmed; jobs -> Payment. Notifica a cuentas."""
    ids = require_int_ids(payment_ids, "pagos")

    def work(outbox):
        payments = load_payments(ids, lock=True)
        jobs = _jobs_of(payments)

        _require_payment_transition(payments, PaymentStatus.CONFIRMED)
        _require_job_transition(jobs, JobStatus.PAYMENT)

        for p in payments:
            p.status = PaymentStatus.CONFIRMED.value
        for job in jobs.values():
            job.transition_to(JobStatus.PAYMENT)
            outbox.record(actor, "PAYMENT_CONFIRMED", "Payments confirmed by clearance", "SHIPMENT", job.id)
        db.session.flush()

        outbox.notify(ROLE_ACCOUNTS, "Payments Confirmed",
                      f"{len(payments)} payment(s) confirmed and ready to process", link="/payments")
        return BatchResult(payment_ids=ids, job_ids=list(jobs), updated=len(payments))

    return run_in_transaction(work, label="confirm_payments")


def send_payments_to_accounts(payment_ids: Iterable, actor: Actor = SYSTEM) -> BatchResult:
    """
    Envía pagos Draft a cuentas. Precondición: todos los jobs del lote despachados
    (progress 100 o status Cleared). Si alguno no lo está se rechaza el lote completo
    y el error nombra solo esos jobs; no se cambia ningún pago.
    Draft -> Pending ("No Payment" -> No Payment); jobs -> Payment (Completed no se toca).
    """
    ids = require_int_ids(payment_ids, "pagos")

    def work(outbox):
        payments = load_payments(ids, lock=True)
        jobs = _jobs_of(payments)

        incomplete = [
            j for j in jobs.values()
            if not j.is_cleared and j.status != JobStatus.COMPLETED.value
        ]
        if incomplete:
            names = ", ".join(f"Job {j.id} ({j.customer})" for j in incomplete)
            raise PreconditionFailed(
                f"No se puede enviar a cuentas. Jobs aún no despachados: {names}. "
                f"Emita delivery notes para todos los BLs primero.",
                offending_ids=[j.id for j in incomplete],
            )

        updated = 0
        for p in payments:
            if p.status != PaymentStatus.DRAFT.value:
                continue
            if p.payment_type == NO_PAYMENT_TYPE:
                p.status = PaymentStatus.NO_PAYMENT.value
            else:
                p.status = PaymentStatus.PENDING.value
            updated += 1

        for job in jobs.values():
            if job.status != JobStatus.COMPLETED.value:
                job.transition_to(JobStatus.PAYMENT)
        db.session.flush()

        outbox.record(actor, "SEND_PAYMENTS_TO_ACCOUNTS", f"Sent {updated} payments to accounts", "JOB", "BATCH")
        outbox.notify(ROLE_ACCOUNTS, "Payments Sent to Accounts",
                      f"{updated} payment(s) pending processing for jobs {', '.join(jobs)}", link="/payments")
        return BatchResult(payment_ids=ids, job_ids=list(jobs), updated=updated)

    result = run_in_transaction(work, label="send_payments_to_accounts")
    logger.info(f"Pagos enviados a cuentas updated={result.updated} jobs={result.job_ids}")
    return result


def process_payment_batch(
    payment_ids: Iterable,
    reference: Optional[str] = None,
    payment_date=None,
    payment_mode: Optional[str] = None,
    comments: Optional[str] = None,
    actor: Actor = SYSTEM,
    processed_at: Optional[datetime] = None,
) -> BatchResult:
    """
    Paga un lote: un único voucher VH-{año}-{seq} para todos los pagos,
    todos pasan a Paid y se recalcula la liquidación de cada job. Una transacción:
    o todos quedan Paid con el mismo voucher, o ninguno cambia.
    Post-commit: auditoría por job y notificación (fallas solo se loguean).
    """
    ids = require_int_ids(payment_ids, "pagos")
    paid_on = parse_date(payment_date) if payment_date not in (None, "") else None
    if payment_date not in (None, "") and paid_on is None:
        raise ValidationError(f"Fecha de pago inválida: {payment_date}")
    processed_at = processed_at or datetime.utcnow()
    paid_on = paid_on or processed_at.date()

    def work(outbox):
        payments = load_payments(ids, lock=True)
        _require_payment_transition(payments, PaymentStatus.PAID)

        voucher_no = sequences.next_id(sequences.VOUCHER_SCOPE, processed_at)
        db.session.add(PaymentVoucher(
            voucher_no=voucher_no,
            reference=reference,
            payment_date=paid_on,
            payment_mode=payment_mode,
            comments=comments,
            processed_by=actor.id,
        ))
        # colisión de voucher se detecta aquí (PK) -> reintento
        db.session.flush()

        for p in payments:
            p.status = PaymentStatus.PAID.value
            p.voucher_no = voucher_no
            p.bill_ref_no = reference or p.bill_ref_no
            p.paid_at = paid_on
            p.payment_mode = payment_mode
            p.comments = comments
            p.processed_by = actor.id
        db.session.flush()

        job_ids = sorted({p.job_id for p in payments})
        settled = progress.recompute_payment_completion(job_ids, actor=actor, outbox=outbox)

        for job_id in job_ids:
            outbox.record(actor, "PAYMENT_PROCESSED", f"Payments processed (Voucher: {voucher_no})", "SHIPMENT", job_id)
        outbox.notify(ROLE_CLEARANCE, "Payments Processed",
                      f"Voucher {voucher_no}: {len(payments)} payment(s) paid for jobs {', '.join(job_ids)}",
                      link="/payments")

        return BatchResult(payment_ids=ids, job_ids=job_ids, updated=len(payments),
                           voucher_no=voucher_no, settled_job_ids=settled)

    result = run_in_transaction(work, label="process_payment_batch")
    logger.info(f"Lote pagado voucher={result.voucher_no} pagos={result.payment_ids} liquidados={result.settled_job_ids}")
    return result

# app/services/audit.py

from dataclasses import dataclass
from typing import Iterable, Optional, Union

from app.extensions import db
from app.models import AuditLog, Notification
from app.utils.logging import get_logger

logger = get_logger("audit")

# roles destino de notificaciones
ROLE_ALL = "All"
ROLE_CLEARANCE = "Clearance"
ROLE_ACCOUNTS = "Accounts"


@dataclass
class AuditEvent:
    user_id: Optional[str]
    action: str
    details: str
    entity_type: str
    entity_id: str


@dataclass
class NotificationEvent:
    role: str
    title: str
    message: str
    type: str = "info"
    link: Optional[str] = None


def _persist(event: Union[AuditEvent, NotificationEvent]) -> None:
    if isinstance(event, AuditEvent):
        db.session.add(AuditLog(
            user_id=event.user_id,
            action=event.action,
            details=event.details,
            entity_type=event.entity_type,
            entity_id=str(event.entity_id),
        ))
    else:
        db.session.add(Notification(
            role=event.role,
            title=event.title,
            message=event.message,
            type=event.type,
            link=event.link,
        ))
    db.session.commit()


def dispatch(events: Iterable[Union[AuditEvent, NotificationEvent]]) -> int:
    """
    Best-effort, post-commit. Cada evento va en su propia transacción:
    si uno falla se registra en log y se sigue con el resto.
    El estado del workflow ya quedó confirmado; nunca se propaga el error.
    Retorna cuántos eventos se escribieron.
    """
    written = 0
    for event in events:
        try:
            _persist(event)
            written += 1
        except Exception:
            db.session.rollback()
            logger.exception(f"No se pudo escribir evento post-commit: {event}")
    return written

# app/services/transactions.py

from __future__ import annotations

from typing import Callable, List, Optional, TypeVar, Union

from flask import current_app
from sqlalchemy.exc import DBAPIError, IntegrityError, InterfaceError, OperationalError

from app.errors import ConflictError, TransientIOError
from app.extensions import db
from app.services import audit
from app.services.actor import Actor
from app.utils.logging import get_logger

logger = get_logger("transactions")

T = TypeVar("T")


class Outbox:
    """
    Cola en memoria de efectos secundarios (audit / notificaciones).
    Se llena dentro de la transacción y se despacha solo después del commit.
    Si la transacción hace rollback, la cola se descarta.
    """

    def __init__(self):
        self.events: List[Union[audit.AuditEvent, audit.NotificationEvent]] = []

    def record(self, actor: Optional[Actor], action: str, details: str, entity_type: str, entity_id) -> None:
        self.events.append(audit.AuditEvent(
            user_id=actor.id if actor else None,
            action=action,
            details=details,
            entity_type=entity_type,
            entity_id=str(entity_id),
        ))

    def notify(self, role: str, title: str, message: str, type: str = "info", link: Optional[str] = None) -> None:
        self.events.append(audit.NotificationEvent(role=role, title=title, message=message, type=type, link=link))

    def dispatch(self) -> int:
        if not self.events:
            return 0
        return audit.dispatch(self.events)


def run_in_transaction(work: Callable[[Outbox], T], label: str, retries: Optional[int] = None) -> T:
    """
    Ejecuta `work(outbox)` como una sola transacción:
      - commit al final; cualquier excepción hace rollback completo (no hay escrituras parciales)
      - IntegrityError (colisión de correlativo / unique) -> se reintenta `retries` veces
        y luego se levanta ConflictError
      - OperationalError / InterfaceError (store caído, conexión rechazada o cortada)
        -> TransientIOError; pg8000 reporta la conexión rechazada como InterfaceError
      - después del commit se despacha el outbox (best-effort)
    """
    if retries is None:
        retries = int(current_app.config.get("SEQUENCE_MAX_RETRIES", 1))

    attempt = 0
    while True:
        outbox = Outbox()
        try:
            result = work(outbox)
            db.session.commit()
        except IntegrityError as e:
            db.session.rollback()
            if attempt < retries:
                attempt += 1
                logger.warning(f"{label}: colisión de unique constraint, reintento {attempt}/{retries}")
                continue
            logger.error(f"{label}: colisión persistente tras {attempt} reintento(s): {e.orig}")
            raise ConflictError(f"{label}: conflicto de identificador, intente nuevamente.") from e
        except (OperationalError, InterfaceError) as e:
            db.session.rollback()
            logger.error(f"{label}: store no disponible: {e.orig}")
            raise TransientIOError(f"{label}: base de datos no disponible, reintente.") from e
        except DBAPIError as e:
            db.session.rollback()
            if not e.connection_invalidated:
                raise
            logger.error(f"{label}: conexión invalidada: {e.orig}")
            raise TransientIOError(f"{label}: base de datos no disponible, reintente.") from e
        except Exception:
            db.session.rollback()
            raise

        outbox.dispatch()
        return result

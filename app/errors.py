# app/errors.py

from typing import Iterable, Optional


class WorkflowError(Exception):
    """
    Base de errores del motor de workflow.
    Siempre lleva la lista de ids ofensores para que el caller pueda
    corregir una selección parcial (nunca solo un mensaje genérico).
    """

    code = "WORKFLOW_ERROR"
    http_status = 500

    def __init__(self, message: str, offending_ids: Optional[Iterable] = None):
        super().__init__(message)
        self.message = message
        self.offending_ids = [str(i) for i in (offending_ids or [])]

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "offending_ids": self.offending_ids,
        }


class ValidationError(WorkflowError):
    # input requerido faltante; se rechaza antes de escribir
    code = "VALIDATION_ERROR"
    http_status = 400


class NotFound(WorkflowError):
    code = "NOT_FOUND"
    http_status = 404


class ConflictError(WorkflowError):
    # colisión de correlativo / unique constraint, ya reintentada
    code = "CONFLICT"
    http_status = 409


class PreconditionFailed(WorkflowError):
    code = "PRECONDITION_FAILED"
    http_status = 422


class InvalidTransition(PreconditionFailed):
    code = "INVALID_TRANSITION"


class TransientIOError(WorkflowError):
    # store no disponible; el caller puede reintentar
    code = "STORE_UNAVAILABLE"
    http_status = 503

# app/services/actor.py

from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class Actor:
    """
    Identidad del usuario que ejecuta la acción.
    La entrega el gateway de autenticación (fuera de este servicio).
    """

    id: Optional[str] = None
    username: str = "System"
    role: str = ""


SYSTEM = Actor()

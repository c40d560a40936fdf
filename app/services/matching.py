# app/services/matching.py

from __future__ import annotations

from typing import Callable, Iterable, List, Optional, TypeVar

from app.utils.logging import get_logger
from app.utils.strings import levenshtein, match_key, match_tokens

logger = get_logger("matching")

T = TypeVar("T")

MAX_DISTANCE = 3

# contención (A dentro de B) solo cuenta si el lado corto tiene al menos esto;
# evita que "co" o "sa" calcen con cualquier razón social
MIN_CONTAINMENT_LENGTH = 3


def _token_starts(value) -> List[int]:
    """
    Posiciones dentro de match_key(value) donde empieza cada palabra.
    "ABC Trading Pte" -> [0, 3, 10]
    """
    starts = []
    offset = 0
    for token in match_tokens(value):
        starts.append(offset)
        offset += len(token)
    return starts


def _contained(short_key: str, long_key: str, long_starts: List[int]) -> bool:
    """El lado corto debe empezar en el inicio de una palabra del lado largo."""
    if len(short_key) < MIN_CONTAINMENT_LENGTH:
        return False
    return any(long_key.startswith(short_key, start) for start in long_starts)


def _rank(target: str, target_starts: List[int], candidate: str, candidate_starts: List[int]):
    """(0 si hay contención, distancia) -> menor es mejor."""
    distance = levenshtein(target, candidate)
    if len(candidate) <= len(target):
        contained = _contained(candidate, target, target_starts)
    else:
        contained = _contained(target, candidate, candidate_starts)
    return (0 if contained else 1, distance), contained, distance


def resolve(
    free_text,
    candidates: Iterable[T],
    key: Optional[Callable[[T], str]] = None,
    max_distance: int = MAX_DISTANCE,
) -> Optional[T]:
    """
    Resuelve un nombre libre al candidato canónico más cercano.

    - normaliza ambos lados (minúsculas, solo alfanuméricos)
    - contención (en cualquier dirección, empezando en el inicio de una palabra) tiene prioridad;
      entre iguales gana la menor distancia. "abc" no calza dentro de "fabco"
    - se acepta si hubo contención o si la distancia es <= max_distance
    - nunca levanta: sin match (o ante cualquier dato raro) retorna None
    """
    try:
        target = match_key(free_text)
        if not target:
            return None
        target_starts = _token_starts(free_text)

        key = key or str
        best = None
        best_rank = None
        best_contained = False
        best_distance = None

        for candidate in candidates:
            name = key(candidate)
            normalized = match_key(name)
            if not normalized:
                continue
            rank, contained, distance = _rank(target, target_starts, normalized, _token_starts(name))
            if best_rank is None or rank < best_rank:
                best, best_rank = candidate, rank
                best_contained, best_distance = contained, distance

        if best is None:
            return None
        if best_contained or best_distance <= max_distance:
            return best
        return None

    except Exception as e:
        logger.debug(f"Fuzzy match descartado para {free_text!r}: {e}")
        return None


class LazyCandidates:
    """
    Carga el registro de candidatos una sola vez y solo si alguien lo pide.
    Así un listado donde todas las filas ya traen el dato no escanea el registro.
    """

    def __init__(self, loader: Callable[[], List[T]], key: Optional[Callable[[T], str]] = None,
                 max_distance: int = MAX_DISTANCE):
        self._loader = loader
        self._key = key
        self._max_distance = max_distance
        self._candidates: Optional[List[T]] = None

    @property
    def loaded(self) -> bool:
        return self._candidates is not None

    def resolve(self, free_text) -> Optional[T]:
        if not match_key(free_text):
            return None
        if self._candidates is None:
            try:
                self._candidates = list(self._loader())
            except Exception as e:
                logger.warning(f"No se pudo cargar el registro para fuzzy match: {e}")
                self._candidates = []
        return resolve(free_text, self._candidates, key=self._key, max_distance=self._max_distance)

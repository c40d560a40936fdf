# app/utils/strings.py

import re
import unicodedata


def norm_text(value) -> str:
    """
    Normaliza texto:
    - string
    - trim
    - elimina tildes
    - colapsa espacios
    """
    if value is None:
        return ""

    s = str(value).strip()

    # quitar tildes: Número -> Numero
    s = unicodedata.normalize("NFD", s)
    s = "".join(c for c in s if unicodedata.category(c) != "Mn")

    return re.sub(r"\s+", " ", s)


def match_key(value) -> str:
    """
    Llave para comparar nombres de contrapartes:
    minúsculas y solo alfanuméricos.
    Ej: "ABC Trading Pte. Ltd." -> "abctradingpteltd"
    """
    return re.sub(r"[^a-z0-9]", "", norm_text(value).lower())


def match_tokens(value) -> list:
    """
    Palabras de match_key en orden; unidas dan exactamente match_key(value).
    Ej: "ABC Trading Pte. Ltd." -> ["abc", "trading", "pte", "ltd"]
    """
    return re.findall(r"[a-z0-9]+", norm_text(value).lower())


def normalize_reference(value) -> str:
    """
    Normaliza referencias de BL / AWB / contenedor:
    - upper
    - quita espacios y guiones
    Ej: "mbl-123 456" -> "MBL123456"
    """
    if value is None:
        return ""
    s = str(value).strip().upper()
    s = re.sub(r"\s+", "", s)
    return s.replace("-", "")


def levenshtein(a: str, b: str) -> int:
    """
    Distancia de edición (inserción, borrado, sustitución con costo 1).
    Se guarda solo la fila anterior: O(len(a) * len(b)) tiempo, O(len(b)) memoria.
    """
    if a == b:
        return 0
    if not a:
        return len(b)
    if not b:
        return len(a)

    if len(a) < len(b):
        a, b = b, a

    previous = list(range(len(b) + 1))
    for i, ca in enumerate(a, start=1):
        current = [i]
        for j, cb in enumerate(b, start=1):
            current.append(min(
                previous[j] + 1,              # borrado
                current[j - 1] + 1,           # inserción
                previous[j - 1] + (ca != cb),  # sustitución
            ))
        previous = current

    return previous[-1]

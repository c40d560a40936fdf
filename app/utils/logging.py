# app/utils/logging.py

import logging

_PREFIX = "app"
_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{_PREFIX}.{name}")


def configure_logging(level="INFO") -> None:
    """
    Configura el logger raíz de la app una sola vez.
    Si ya tiene handlers (gunicorn, pytest), solo ajusta el nivel.
    """
    root = logging.getLogger(_PREFIX)
    root.setLevel(level)

    if root.handlers:
        return

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(_FORMAT))
    root.addHandler(handler)

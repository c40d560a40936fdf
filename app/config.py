# app/config.py

import os

class Config:
    SECRET_KEY = os.getenv("SECRET_KEY", "dev-secret-key")

    # PostgreSQL (Render / local)
    # Render a veces entrega DATABASE_URL como postgres:// (deprecated)
    uri = os.getenv("DATABASE_URL", "postgresql://localhost/freight_workflow")
    if uri.startswith("postgres://"):
        uri = uri.replace("postgres://", "postgresql://", 1)

    # Forzar driver pg8000; si ya viene con driver, no lo tocamos
    if uri.startswith("postgresql://") and "+pg8000" not in uri:
        uri = uri.replace("postgresql://", "postgresql+pg8000://", 1)

    SQLALCHEMY_DATABASE_URI = uri
    SQLALCHEMY_TRACK_MODIFICATIONS = False

    LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")

    # Documentos de delivery notes
    UPLOAD_FOLDER = os.getenv("UPLOAD_FOLDER", "uploads")
    ALLOWED_DOCUMENT_EXTENSIONS = ["jpeg", "jpg", "png", "pdf", "xlsx", "xls", "csv", "doc", "docx"]

    # Limite upload (10MB)
    MAX_CONTENT_LENGTH = 10 * 1024 * 1024

    # Matching de consignees (distancia de edición máxima aceptada)
    FUZZY_MATCH_MAX_DISTANCE = int(os.getenv("FUZZY_MATCH_MAX_DISTANCE", "3"))

    # Reintentos ante colisión de correlativos (DN / voucher / SH)
    SEQUENCE_MAX_RETRIES = int(os.getenv("SEQUENCE_MAX_RETRIES", "1"))

# app/services/storage.py

import os
import time
import hashlib
from datetime import datetime

from werkzeug.utils import secure_filename

from app.utils.logging import get_logger

logger = get_logger("storage")


def ensure_dir(path: str) -> None:
    os.makedirs(path, exist_ok=True)


def sha256_file(path: str, chunk_size: int = 1024 * 1024) -> str:
    h = hashlib.sha256()
    with open(path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            h.update(chunk)
    return h.hexdigest()


def save_delivery_note_document(file_storage, base_upload_folder: str, note_id: str) -> dict:
    """
    Guarda un documento de delivery note en: uploads/delivery_notes/<note_id>/<epoch_ms>-archivo.pdf
    Retorna la metadata que se agrega a DeliveryNote.documents:
      {name, url, stored_path, uploaded_at, type, size, hash}
    """
    if not file_storage or not file_storage.filename:
        raise ValueError("No file provided")

    original_name = file_storage.filename
    safe_name = f"{int(time.time() * 1000)}-{secure_filename(original_name) or 'documento'}"

    note_folder = os.path.join(base_upload_folder, "delivery_notes", note_id)
    ensure_dir(note_folder)

    stored_path = os.path.join(note_folder, safe_name)
    file_storage.save(stored_path)

    file_hash = sha256_file(stored_path)
    size = os.path.getsize(stored_path)

    logger.info(f"Saved document note={note_id} name={original_name} size={size} hash={file_hash}")

    return {
        "name": original_name,
        "url": f"/uploads/delivery_notes/{note_id}/{safe_name}",
        "stored_path": stored_path,
        "uploaded_at": datetime.utcnow().isoformat(),
        "type": file_storage.mimetype,
        "size": size,
        "hash": file_hash,
    }

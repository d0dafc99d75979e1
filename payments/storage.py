from __future__ import annotations

import logging
import uuid
from pathlib import PurePosixPath

from django.conf import settings
from django.core.files.storage import default_storage
from django.utils import timezone

from checkout.errors import OrderValidationError

logger = logging.getLogger(__name__)

PROOF_DIR = "payment_proofs"


def validate_payment_proof(upload) -> None:
    if upload is None:
        raise OrderValidationError("Proof of payment is required", fields=["proof"])

    name = (getattr(upload, "name", "") or "").strip()
    ext = PurePosixPath(name).suffix.lower().lstrip(".")
    allowed = list(getattr(settings, "PAYMENT_PROOF_EXTENSIONS", ["jpg", "jpeg", "png", "pdf"]))
    if not ext or ext not in allowed:
        raise OrderValidationError(
            f"Unsupported proof file type; allowed: {', '.join(allowed)}", fields=["proof"])

    size = int(getattr(upload, "size", 0) or 0)
    max_bytes = int(getattr(settings, "PAYMENT_PROOF_MAX_BYTES", 5 * 1024 * 1024))
    if size <= 0:
        raise OrderValidationError("Proof file is empty", fields=["proof"])
    if size > max_bytes:
        raise OrderValidationError("Proof file is too large", fields=["proof"])


def save_payment_proof(upload) -> str:
    """Store an uploaded proof-of-payment and return its storage name."""

    ext = PurePosixPath(upload.name or "").suffix.lower()
    now = timezone.now()
    name = f"{PROOF_DIR}/{now:%Y/%m}/{uuid.uuid4().hex}{ext}"
    stored = default_storage.save(name, upload)
    logger.info("Stored payment proof", extra={"proof_ref": stored})
    return stored


def delete_payment_proof(name: str | None) -> None:
    """Remove a stored proof. Used to roll back a failed checkout."""

    if not name:
        return
    try:
        default_storage.delete(name)
    except Exception:
        logger.exception("Failed to delete orphaned payment proof", extra={"proof_ref": name})

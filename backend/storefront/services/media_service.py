# Overview: Storage for uploaded payment proofs.

from __future__ import annotations

import os
import secrets

from flask import current_app
from werkzeug.utils import secure_filename

from ..errors import ValidationError


ALLOWED_PROOF_EXTENSIONS = {".jpg", ".jpeg", ".png", ".webp", ".pdf"}


def checked_filename(file) -> str:
    """
    Safe name for an upload.

    Raises:
        ValidationError: empty upload or unsupported file type
    """
    filename = secure_filename(file.filename or "")
    if not filename:
        raise ValidationError("Uploaded file has no name")

    extension = os.path.splitext(filename)[1].lower()
    if extension not in ALLOWED_PROOF_EXTENSIONS:
        raise ValidationError(
            "Unsupported file type",
            {"allowed": sorted(ALLOWED_PROOF_EXTENSIONS)},
        )
    return filename


class LocalMediaStore:
    """Writes uploads under MEDIA_ROOT and serves them from MEDIA_BASE_URL."""

    def __init__(self, root: str, base_url: str):
        self.root = root
        self.base_url = base_url.rstrip("/")

    def save(self, file, folder: str) -> str:
        """Persist a werkzeug FileStorage and return its public URL."""
        filename = checked_filename(file)
        stored_name = f"{secrets.token_hex(8)}-{filename}"
        directory = os.path.join(self.root, folder)
        os.makedirs(directory, exist_ok=True)
        file.save(os.path.join(directory, stored_name))
        return f"{self.base_url}/{folder}/{stored_name}"


def get_media_store() -> LocalMediaStore:
    return current_app.extensions["media_store"]


def _has_file(file) -> bool:
    return file is not None and bool(getattr(file, "filename", ""))


def check_payment_proof(file) -> None:
    """Reject an unusable upload before anything is written."""
    if _has_file(file):
        checked_filename(file)


def save_payment_proof(file, folder: str = "payment-proofs") -> str | None:
    """Upload ``file`` when one was sent; None otherwise."""
    if not _has_file(file):
        return None
    url = get_media_store().save(file, folder)
    current_app.logger.info("Payment proof stored at %s", url)
    return url

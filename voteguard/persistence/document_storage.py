"""
Uploaded document storage.

Accepts uploaded ID documents, stores them under unique names in the
uploads directory and resolves stored filenames back to paths.
"""

from __future__ import annotations

from pathlib import Path
from typing import Optional

from ..exceptions import DataPersistenceError, InfrastructureError, ValidationError
from ..logger import get_logger
from ..models import StoredDocument
from ..utils.file_utils import atomic_write_bytes, ensure_dir, unique_filename, safe_filename
from ..utils.timing import utc_now_iso

logger = get_logger(__name__)

# Per-upload size limit
MAX_UPLOAD_BYTES = 10 * 1024 * 1024


class DocumentStorage:
    """Filesystem-backed document storage."""

    def __init__(self, uploads_dir: Path, max_bytes: int = MAX_UPLOAD_BYTES):
        self.uploads_dir = ensure_dir(uploads_dir)
        self.max_bytes = max_bytes

    def save(self, data: bytes, original_filename: str) -> StoredDocument:
        """
        Store an uploaded document.

        Raises:
            ValidationError: empty or oversized upload
            DataPersistenceError: the file could not be written
        """
        if not data:
            raise ValidationError("ID image is required", field_name="image")
        if len(data) > self.max_bytes:
            raise ValidationError(
                "ID image is too large",
                field_name="image",
                field_value=len(data),
                expected=f"<= {self.max_bytes} bytes",
            )

        filename = unique_filename(original_filename)
        path = self.uploads_dir / filename
        try:
            atomic_write_bytes(path, data)
        except OSError as e:
            raise DataPersistenceError(
                f"Could not store upload: {e}", file_path=str(path), operation="save"
            ) from e

        logger.debug(f"Stored upload {original_filename!r} as {filename}")
        return StoredDocument(filename=filename, path=str(path), uploaded_at=utc_now_iso())

    def resolve(self, document: StoredDocument) -> Path:
        """
        Path of a stored document.

        Prefers the recorded path and falls back to the uploads directory.

        Raises:
            InfrastructureError: the file no longer exists
        """
        candidates = []
        if document.path:
            candidates.append(Path(document.path))
        candidates.append(self.uploads_dir / safe_filename(document.filename))

        for candidate in candidates:
            if candidate.is_file():
                return candidate

        raise InfrastructureError(
            "Original ID document file not found",
            file_path=str(candidates[0]),
            operation="resolve",
        )

    def exists(self, document: Optional[StoredDocument]) -> bool:
        if document is None:
            return False
        try:
            self.resolve(document)
        except InfrastructureError:
            return False
        return True

    def delete(self, document: StoredDocument) -> bool:
        try:
            path = self.resolve(document)
        except InfrastructureError:
            return False
        path.unlink()
        return True

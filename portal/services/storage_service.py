import logging
import os
import uuid

from flask import current_app, url_for
from werkzeug.utils import secure_filename

from portal.exceptions import NotFoundError, StoreUnavailable, ValidationError

logger = logging.getLogger(__name__)


class LocalBlobStore:
    """Stores uploads on disk under UPLOAD_DIR and hands back opaque keys."""

    def __init__(self, root: str):
        self.root = os.path.abspath(root)

    def _path(self, key: str) -> str:
        path = os.path.abspath(os.path.join(self.root, key))
        if os.path.dirname(path) != self.root:
            raise NotFoundError("File not found", "FILE_NOT_FOUND")
        return path

    def save(self, file_storage, file_name: str) -> tuple[str, int]:
        """Write an uploaded file. Returns (key, size in bytes)."""
        key = f"{uuid.uuid4().hex}_{file_name}"
        try:
            os.makedirs(self.root, exist_ok=True)
            path = self._path(key)
            file_storage.save(path)
            size = os.path.getsize(path)
        except OSError as e:
            logger.exception("Failed to store upload %s", file_name)
            raise StoreUnavailable() from e
        return key, size

    def open_path(self, key: str) -> str:
        path = self._path(key)
        if not os.path.isfile(path):
            raise NotFoundError("File not found", "FILE_NOT_FOUND")
        return path

    def delete(self, key: str) -> None:
        try:
            os.remove(self._path(key))
        except FileNotFoundError:
            pass
        except OSError:
            logger.warning("Could not remove stored file %s", key)

    def url_for(self, key: str) -> str:
        return url_for('files.download_file', key=key, _external=False)


class StorageService:

    @staticmethod
    def store() -> LocalBlobStore:
        return current_app.extensions['blob_store']

    @staticmethod
    def clean_file_name(file_storage) -> str:
        file_name = secure_filename(file_storage.filename or '')
        if not file_name or '.' not in file_name:
            raise ValidationError("A file with an extension is required", "INVALID_FILE")

        extension = file_name.rsplit('.', 1)[1].lower()
        if extension not in current_app.config['ALLOWED_UPLOAD_EXTENSIONS']:
            raise ValidationError(f"File type .{extension} is not allowed", "INVALID_FILE_TYPE")
        return file_name

"""Attachment storage for order instructions and submitted work."""

from __future__ import annotations

import os
import uuid
from pathlib import Path
from typing import Iterable

from flask import current_app
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from wms.services.errors import InvalidInputError

ALLOWED_EXTENSIONS = {
    'pdf', 'doc', 'docx', 'txt', 'rtf', 'odt',
    'xls', 'xlsx', 'ppt', 'pptx', 'csv',
    'png', 'jpg', 'jpeg', 'zip',
}
MAX_FILE_SIZE = 20 * 1024 * 1024  # 20MB


def allowed_file(filename: str) -> bool:
    """Check if file extension is allowed."""
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in ALLOWED_EXTENSIONS


def _upload_root() -> Path:
    """Return (and ensure) the configured upload root."""
    root = Path(current_app.config.get('UPLOAD_FOLDER', './uploads')).resolve()
    root.mkdir(parents=True, exist_ok=True)
    return root


def _ensure_within_root(path: Path) -> None:
    root = _upload_root()
    if root not in path.resolve().parents:
        raise PermissionError('Attempted to write outside upload directory')


def _determine_size(file: FileStorage) -> int:
    stream = file.stream
    current = stream.tell()
    stream.seek(0, os.SEEK_END)
    size = stream.tell()
    stream.seek(current)
    return size


def save_attachments(files: Iterable[FileStorage], subfolder: str) -> list[tuple[str, str]]:
    """
    Validate and store uploaded files.

    Every file is checked before any is written, so a rejected batch leaves
    nothing behind.

    Args:
        files: Uploaded files from the request
        subfolder: Directory under the upload root (``orders`` or ``submissions``)

    Returns:
        (relative_path, original_name) pairs, relative to the upload root
    """
    files = [f for f in files if f and f.filename]
    limit = current_app.config.get('MAX_UPLOAD_FILES', 10)
    if len(files) > limit:
        raise InvalidInputError(f'At most {limit} files may be uploaded')

    for file in files:
        if not allowed_file(file.filename):
            raise InvalidInputError(f'Unsupported file type: {file.filename}')
        if _determine_size(file) > MAX_FILE_SIZE:
            raise InvalidInputError(f'File exceeds maximum upload size of 20 MB: {file.filename}')

    target_dir = _upload_root() / secure_filename(subfolder)
    target_dir.mkdir(parents=True, exist_ok=True)

    saved = []
    for file in files:
        ext = file.filename.rsplit('.', 1)[1].lower()
        filepath = target_dir / f"{uuid.uuid4().hex}.{ext}"
        _ensure_within_root(filepath)

        file.stream.seek(0)
        file.save(str(filepath))
        relative = filepath.relative_to(_upload_root())
        saved.append((relative.as_posix(), secure_filename(file.filename) or filepath.name))
    return saved


def resolve_attachment(relative_path: str) -> Path:
    """Map a stored relative path back to a file under the upload root."""
    target = _upload_root() / relative_path
    _ensure_within_root(target)
    if not target.is_file():
        raise FileNotFoundError(relative_path)
    return target


__all__ = ['save_attachments', 'resolve_attachment', 'allowed_file', 'ALLOWED_EXTENSIONS', 'MAX_FILE_SIZE']

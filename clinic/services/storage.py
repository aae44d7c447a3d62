"""
Upload storage through Django's default storage backend.

Files are sorted into ``uploads/<images|audio|documents|others>/`` and
renamed to a uuid so user supplied names never reach the filesystem.
"""
import os
import uuid

from django.conf import settings
from django.core.files.storage import default_storage
from django.utils import timezone

from clinic.exceptions import ValidationFailed


def upload_subdir(mime_type: str) -> str:
    if mime_type.startswith('image/'):
        return 'images'
    if mime_type.startswith('audio/'):
        return 'audio'
    if mime_type == 'application/pdf':
        return 'documents'
    return 'others'


def store_upload(upload) -> dict:
    if upload is None:
        raise ValidationFailed('No file uploaded')
    mime_type = (getattr(upload, 'content_type', '') or '').lower()
    if mime_type not in settings.ALLOWED_UPLOAD_TYPES:
        raise ValidationFailed('File type not allowed')
    if (upload.size or 0) > settings.UPLOAD_MAX_BYTES:
        raise ValidationFailed('File too large')

    ext = os.path.splitext(upload.name or '')[1].lower()[:10]
    file_name = f"{uuid.uuid4().hex}-{int(timezone.now().timestamp() * 1000)}{ext}"
    stored = default_storage.save(f"uploads/{upload_subdir(mime_type)}/{file_name}", upload)
    return {
        'originalName': upload.name,
        'fileName': os.path.basename(stored),
        'fileUrl': default_storage.url(stored),
        'fileSize': upload.size,
        'mimeType': mime_type,
        'uploadedAt': timezone.now().isoformat(),
    }

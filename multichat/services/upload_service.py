from __future__ import annotations

import base64
from dataclasses import dataclass
from pathlib import Path
from typing import Optional
from uuid import uuid4

from fastapi import UploadFile
from loguru import logger

from multichat.core.config import settings
from multichat.services.ai_types import ImagePart

UPLOAD_URL_PREFIX = 'uploads'


@dataclass(frozen=True)
class StoredUpload:
    file_info: dict
    image: Optional[ImagePart] = None
    annotation: Optional[str] = None


def describe_upload(original_name: str, size: int) -> str:
    return f'[File Uploaded: {original_name} ({size / 1024:.1f} KB)]'


def combine_text(text: Optional[str], annotation: Optional[str]) -> str:
    text = text or ''
    if not annotation:
        return text
    return f'{text}\n{annotation}' if text else annotation


def _stored_name(original_name: str) -> str:
    suffix = Path(original_name).suffix.lower()
    return f'{uuid4().hex}{suffix}'


async def store_upload(file: UploadFile, upload_dir: Optional[Path] = None) -> StoredUpload:
    data = await file.read()
    if len(data) > settings.MAX_UPLOAD_BYTES:
        raise ValueError(f'File exceeds the {settings.MAX_UPLOAD_BYTES // (1024 * 1024)} MB upload limit.')
    original_name = file.filename or 'upload'
    mime_type = file.content_type or 'application/octet-stream'
    target_dir = Path(upload_dir or settings.UPLOAD_DIR)
    target_dir.mkdir(parents=True, exist_ok=True)
    name = _stored_name(original_name)
    (target_dir / name).write_bytes(data)
    file_info = {
        'filename': name,
        'originalname': original_name,
        'mimetype': mime_type,
        'size': len(data),
        'path': f'{UPLOAD_URL_PREFIX}/{name}',
    }
    logger.info('upload.stored', filename=name, mimetype=mime_type, size=len(data))
    if mime_type.startswith('image/'):
        image = ImagePart(mime_type=mime_type, data=base64.b64encode(data).decode('ascii'))
        return StoredUpload(file_info=file_info, image=image)
    return StoredUpload(file_info=file_info, annotation=describe_upload(original_name, len(data)))

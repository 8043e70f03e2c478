"""
Job photo handlers: bytes go to object storage, metadata to the document store.
"""

from __future__ import annotations

import logging
import re
import uuid
from typing import Optional

from treeops.db import DbClient, Document, RecordNotFoundError, now_ms
from treeops.schemas import PhotoUpdate, PhotoUploadResponse
from treeops.storage import StorageClient

logger = logging.getLogger(__name__)

PHOTOS = "photos"
DEFAULT_LIST_LIMIT = 50
ENTITY_TYPES = ("work_order", "equipment", "lead", "employee", "customer")


def _safe_filename(filename: str) -> str:
    cleaned = re.sub(r"[^A-Za-z0-9._-]+", "_", filename).strip("._")
    return cleaned or "photo"


def _is_active(doc: Document) -> bool:
    return doc.get("is_active") is True


def _with_url(storage: StorageClient, photo: Document) -> Document:
    photo["url"] = storage.presign_get(photo["storage_path"])
    return photo


def upload_photo(
    db: DbClient,
    storage: StorageClient,
    *,
    data: bytes,
    filename: str,
    content_type: str,
    entity_type: str,
    entity_id: str,
    description: Optional[str] = None,
    category: Optional[str] = None,
) -> PhotoUploadResponse:
    if entity_type not in ENTITY_TYPES:
        raise ValueError(f"Unsupported entity type: {entity_type}")

    storage_path = (
        f"photos/{entity_type}/{entity_id}/{uuid.uuid4().hex}-{_safe_filename(filename)}"
    )
    storage.upload_bytes(storage_path, data, content_type)

    record = {
        "storage_path": storage_path,
        "filename": filename,
        "content_type": content_type,
        "entity_type": entity_type,
        "entity_id": entity_id,
        "description": description,
        "category": category,
        "uploaded_at": now_ms(),
        "is_active": True,
    }
    photo_id = db.insert(PHOTOS, {k: v for k, v in record.items() if v is not None})
    logger.info("Stored photo %s for %s %s", photo_id, entity_type, entity_id)
    return PhotoUploadResponse(
        photo_id=photo_id,
        storage_path=storage_path,
        url=storage.presign_get(storage_path),
    )


def list_photos_for_entity(
    db: DbClient,
    storage: StorageClient,
    entity_type: str,
    entity_id: str,
    category: Optional[str] = None,
) -> list[Document]:
    def matches(doc: Document) -> bool:
        if not _is_active(doc) or doc.get("entity_id") != entity_id:
            return False
        return category is None or doc.get("category") == category

    photos = db.query(PHOTOS, index=("entity_type", entity_type), where=matches)
    return [_with_url(storage, photo) for photo in photos]


def list_photos(
    db: DbClient,
    storage: StorageClient,
    limit: int = DEFAULT_LIST_LIMIT,
    entity_type: Optional[str] = None,
) -> list[Document]:
    def matches(doc: Document) -> bool:
        if not _is_active(doc):
            return False
        return entity_type is None or doc.get("entity_type") == entity_type

    photos = db.query(PHOTOS, where=matches, limit=limit)
    return [_with_url(storage, photo) for photo in photos]


def update_photo(db: DbClient, photo_id: str, payload: PhotoUpdate) -> Document:
    updates = payload.model_dump(exclude_none=True)
    updates["updated_at"] = now_ms()
    return db.patch(PHOTOS, photo_id, updates)


def delete_photo(db: DbClient, storage: StorageClient, photo_id: str) -> Document:
    photo = db.get(PHOTOS, photo_id)
    if not photo:
        raise RecordNotFoundError(PHOTOS, photo_id)
    storage.delete(photo["storage_path"])
    logger.info("Deleted photo %s", photo_id)
    return db.patch(PHOTOS, photo_id, {"is_active": False, "deleted_at": now_ms()})

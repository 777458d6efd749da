"""
Image uploads kept in the GridFS ``media`` bucket, with one ``media``
document per file for listing and lookup.
"""
import io
import logging
import os
import uuid
from typing import Any, Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile
from fastapi.responses import StreamingResponse
from gridfs.errors import NoFile
from PIL import Image, UnidentifiedImageError
from pymongo import ASCENDING, DESCENDING

from auth import get_current_user, require_admin
from config import BASE_URL, MAX_UPLOAD_BYTES
from database import contains, create_document, get_db, get_media_storage, parse_object_id, serialize, serialize_many
from schemas import Media

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/media", tags=["media"])

ALLOWED_MIME_TYPES = {"image/jpeg", "image/png", "image/gif", "image/webp", "image/svg+xml"}
MAX_DIMENSIONS = (2000, 2000)
JPEG_QUALITY = 85
SORTABLE_FIELDS = {"created_at", "original_name", "size", "filename"}


def process_image(data: bytes, mime_type: str) -> Tuple[bytes, str]:
    """
    Shrink raster images to fit inside 2000x2000 and re-encode them as JPEG.

    Images are never enlarged. SVGs are stored untouched. Returns the bytes to
    store and their mime type.
    """
    if mime_type == "image/svg+xml":
        return data, mime_type
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.thumbnail(MAX_DIMENSIONS)
            if img.mode != "RGB":
                img = img.convert("RGB")
            out = io.BytesIO()
            img.save(out, format="JPEG", quality=JPEG_QUALITY)
    except (UnidentifiedImageError, OSError):
        raise HTTPException(400, "Invalid image file")
    return out.getvalue(), "image/jpeg"


def storage_filename(original_name: str, mime_type: str) -> str:
    ext = ".jpg" if mime_type == "image/jpeg" else os.path.splitext(original_name)[1].lower()
    return f"{uuid.uuid4().hex}{ext}"


def parse_tags(tags: Optional[str]) -> List[str]:
    if not tags:
        return []
    return [t.strip() for t in tags.split(",") if t.strip()]


def get_media_or_404(db, media_id: str) -> dict:
    media = db["media"].find_one({"_id": parse_object_id(media_id)})
    if not media:
        raise HTTPException(404, "Media not found")
    return media


@router.post("/upload", status_code=201)
def upload_media(
    file: UploadFile = File(...),
    tags: Optional[str] = Form(None),
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
    storage=Depends(get_media_storage),
):
    if file.content_type not in ALLOWED_MIME_TYPES:
        raise HTTPException(400, "Invalid file type. Only images are allowed.")
    data = file.file.read(MAX_UPLOAD_BYTES + 1)
    if not data:
        raise HTTPException(400, "No file uploaded")
    if len(data) > MAX_UPLOAD_BYTES:
        raise HTTPException(400, f"File too large. Maximum size is {MAX_UPLOAD_BYTES // (1024 * 1024)}MB")

    original_name = file.filename or "upload"
    body, mime_type = process_image(data, file.content_type)
    filename = storage_filename(original_name, mime_type)
    gridfs_id = storage.upload_from_stream(filename, io.BytesIO(body), metadata={"content_type": mime_type})

    media = Media(
        filename=filename,
        original_name=original_name,
        mime_type=mime_type,
        size=len(body),
        url=f"{BASE_URL}/api/media/serve/{filename}",
        gridfs_id=gridfs_id,
        uploaded_by=user["id"],
        tags=parse_tags(tags),
    )
    media_id = create_document(db, "media", media)
    logger.info("Uploaded %s (%s, %d bytes) as %s", original_name, mime_type, len(body), filename)
    return serialize(db["media"].find_one({"_id": parse_object_id(media_id)}))


@router.get("")
def list_media(
    page: int = 1,
    limit: int = 20,
    search: Optional[str] = None,
    tags: Optional[str] = None,
    sort_by: str = "created_at",
    sort_order: str = "desc",
    _: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    if sort_by not in SORTABLE_FIELDS:
        raise HTTPException(400, f"Cannot sort by {sort_by}")
    page = max(page, 1)
    limit = min(max(limit, 1), 100)
    filt: Dict[str, Any] = {}
    if search:
        filt["$or"] = [
            {"original_name": contains(search)},
            {"filename": contains(search)},
        ]
    tag_list = parse_tags(tags)
    if tag_list:
        filt["tags"] = {"$in": tag_list}
    direction = ASCENDING if sort_order == "asc" else DESCENDING
    total = db["media"].count_documents(filt)
    items = db["media"].find(filt).sort(sort_by, direction).skip((page - 1) * limit).limit(limit)
    return {
        "media": serialize_many(items),
        "pagination": {"page": page, "limit": limit, "total": total, "pages": (total + limit - 1) // limit},
    }


@router.get("/serve/{filename}")
def serve_media(filename: str, db=Depends(get_db), storage=Depends(get_media_storage)):
    media = db["media"].find_one({"filename": filename})
    if not media:
        raise HTTPException(404, "Media not found")
    try:
        stream = storage.open_download_stream(media["gridfs_id"])
    except NoFile:
        logger.warning("Media %s has no stored file", filename)
        raise HTTPException(404, "Media not found")
    return StreamingResponse(
        stream,
        media_type=media["mime_type"],
        headers={"Cache-Control": "public, max-age=31536000"},
    )


@router.get("/{media_id}")
def get_media(media_id: str, _: dict = Depends(get_current_user), db=Depends(get_db)):
    return serialize(get_media_or_404(db, media_id))


@router.delete("/{media_id}")
def delete_media(
    media_id: str,
    _: dict = Depends(require_admin),
    db=Depends(get_db),
    storage=Depends(get_media_storage),
):
    media = get_media_or_404(db, media_id)
    try:
        storage.delete(media["gridfs_id"])
    except NoFile:
        logger.warning("Media %s had no stored file", media["filename"])
    db["media"].delete_one({"_id": media["_id"]})
    return {"message": "Media deleted successfully"}

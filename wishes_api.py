import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, EmailStr, Field
from pymongo import DESCENDING

from auth import get_current_user
from database import get_db, now_utc, parse_object_id, serialize, serialize_many
from schemas import Wish
from site_access import client_info, ensure_wishes_open, find_owned_site, find_published_site

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/wishes", tags=["wishes"])

PUBLIC_WISH_FIELDS = {"author_name": 1, "message": 1, "is_highlighted": 1, "submitted_at": 1}


# ---------- Models ----------
class WishRequest(BaseModel):
    author_name: str = Field(..., min_length=1, max_length=100)
    author_email: Optional[EmailStr] = None
    message: str = Field(..., min_length=1, max_length=1000)


class BulkRequest(BaseModel):
    wish_ids: List[str] = Field(..., min_length=1)


# ---------- Helpers ----------
def create_wish(db, collection: str, site: dict, payload: WishRequest, request: Request) -> dict:
    """Store a guest wish; it starts pending when the site moderates wishes."""
    needs_approval = (site.get("settings") or {}).get("require_wish_approval", True)
    wish = Wish(
        site_id=site["_id"],
        author_name=payload.author_name,
        author_email=payload.author_email.lower() if payload.author_email else None,
        message=payload.message,
        status="pending" if needs_approval else "approved",
        submitted_at=now_utc(),
        **client_info(request),
    ).model_dump()
    wish["created_at"] = wish["updated_at"] = now_utc()
    wish["_id"] = db["wish"].insert_one(wish).inserted_id
    db[collection].update_one({"_id": site["_id"]}, {"$inc": {"stats.wish_count": 1}})
    logger.info("Wish received for %s %s (%s)", collection, site["_id"], wish["status"])
    return wish


def wish_stats(db, site_id) -> dict:
    groups = {
        g["_id"]: g["count"]
        for g in db["wish"].aggregate([
            {"$match": {"site_id": site_id}},
            {"$group": {"_id": "$status", "count": {"$sum": 1}}},
        ])
    }
    return {
        "total": sum(groups.values()),
        "pending": groups.get("pending", 0),
        "approved": groups.get("approved", 0),
        "rejected": groups.get("rejected", 0),
        "highlighted": db["wish"].count_documents({"site_id": site_id, "is_highlighted": True}),
    }


def release_highlight_slots(db, collection: str, site_id, count: int = 1) -> None:
    if count:
        db[collection].update_one(
            {"_id": site_id, "stats.highlighted_wishes": {"$gte": count}},
            {"$inc": {"stats.highlighted_wishes": -count}},
        )


def toggle_highlight(db, collection: str, site: dict, wish: dict) -> None:
    """
    Flip ``is_highlighted`` on a wish while keeping the site's highlight
    counter under ``settings.max_highlighted_wishes``.

    A slot is claimed with a conditional increment before the wish is flipped,
    so two concurrent toggles can never both take the last slot.
    """
    if wish.get("is_highlighted"):
        result = db["wish"].update_one(
            {"_id": wish["_id"], "is_highlighted": True},
            {"$set": {"is_highlighted": False, "updated_at": now_utc()}},
        )
        if result.modified_count:
            release_highlight_slots(db, collection, site["_id"])
        return

    limit = (site.get("settings") or {}).get("max_highlighted_wishes", 5)
    claimed = db[collection].update_one(
        {"_id": site["_id"], "stats.highlighted_wishes": {"$lt": limit}},
        {"$inc": {"stats.highlighted_wishes": 1}},
    )
    if not claimed.modified_count:
        raise HTTPException(400, f"Maximum {limit} wishes can be highlighted")
    result = db["wish"].update_one(
        {"_id": wish["_id"], "is_highlighted": {"$ne": True}},
        {"$set": {"is_highlighted": True, "updated_at": now_utc()}},
    )
    if not result.modified_count:
        release_highlight_slots(db, collection, site["_id"])


def get_wish_or_404(db, site: dict, wish_id: str) -> dict:
    wish = db["wish"].find_one({"_id": parse_object_id(wish_id), "site_id": site["_id"]})
    if not wish:
        raise HTTPException(404, "Wish not found")
    return wish


def moderate(db, site: dict, wish_id: str, status: str, user: dict) -> dict:
    wish = get_wish_or_404(db, site, wish_id)
    db["wish"].update_one(
        {"_id": wish["_id"]},
        {"$set": {"status": status, "moderated_at": now_utc(), "moderated_by": user["id"], "updated_at": now_utc()}},
    )
    return serialize(db["wish"].find_one({"_id": wish["_id"]}))


def bulk_filter(site: dict, wish_ids: List[str]) -> Dict[str, Any]:
    return {"_id": {"$in": [parse_object_id(w) for w in wish_ids]}, "site_id": site["_id"]}


# ---------- Public ----------
@router.post("/{site_id}", status_code=201)
def submit_wish(site_id: str, payload: WishRequest, request: Request, db=Depends(get_db)):
    collection, site = find_published_site(db, site_id)
    ensure_wishes_open(site)
    wish = create_wish(db, collection, site, payload, request)
    if wish["status"] == "pending":
        message = "Thank you for your wishes! Your message will appear after review."
    else:
        message = "Thank you for your wishes!"
    return {"message": message, "wish": serialize(wish)}


@router.get("/{site_id}/approved")
def get_approved_wishes(site_id: str, db=Depends(get_db)):
    _, site = find_published_site(db, site_id)
    wishes = db["wish"].find(
        {"site_id": site["_id"], "status": "approved"}, PUBLIC_WISH_FIELDS
    ).sort([("is_highlighted", DESCENDING), ("submitted_at", DESCENDING)])
    return {"wishes": serialize_many(wishes)}


# ---------- Owner ----------
@router.get("/{site_id}")
def list_wishes(site_id: str, status: Optional[str] = None, user: dict = Depends(get_current_user), db=Depends(get_db)):
    _, site = find_owned_site(db, site_id, user)
    filt: Dict[str, Any] = {"site_id": site["_id"]}
    if status and status != "all":
        filt["status"] = status
    return {"wishes": serialize_many(db["wish"].find(filt).sort("submitted_at", DESCENDING))}


@router.get("/{site_id}/stats")
def get_wish_stats(site_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    _, site = find_owned_site(db, site_id, user)
    return wish_stats(db, site["_id"])


@router.post("/{site_id}/bulk/approve")
def bulk_approve(site_id: str, payload: BulkRequest, user: dict = Depends(get_current_user), db=Depends(get_db)):
    _, site = find_owned_site(db, site_id, user)
    result = db["wish"].update_many(
        bulk_filter(site, payload.wish_ids),
        {"$set": {"status": "approved", "moderated_at": now_utc(), "moderated_by": user["id"]}},
    )
    return {"message": "Wishes approved successfully", "modified": result.modified_count}


@router.post("/{site_id}/bulk/reject")
def bulk_reject(site_id: str, payload: BulkRequest, user: dict = Depends(get_current_user), db=Depends(get_db)):
    _, site = find_owned_site(db, site_id, user)
    result = db["wish"].update_many(
        bulk_filter(site, payload.wish_ids),
        {"$set": {"status": "rejected", "moderated_at": now_utc(), "moderated_by": user["id"]}},
    )
    return {"message": "Wishes rejected successfully", "modified": result.modified_count}


@router.post("/{site_id}/bulk/delete")
def bulk_delete(site_id: str, payload: BulkRequest, user: dict = Depends(get_current_user), db=Depends(get_db)):
    collection, site = find_owned_site(db, site_id, user)
    filt = bulk_filter(site, payload.wish_ids)
    highlighted = db["wish"].delete_many({**filt, "is_highlighted": True}).deleted_count
    deleted = highlighted + db["wish"].delete_many(filt).deleted_count
    release_highlight_slots(db, collection, site["_id"], highlighted)
    return {"message": "Wishes deleted successfully", "deleted": deleted}


@router.post("/{site_id}/{wish_id}/approve")
def approve_wish(site_id: str, wish_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    _, site = find_owned_site(db, site_id, user)
    return moderate(db, site, wish_id, "approved", user)


@router.post("/{site_id}/{wish_id}/reject")
def reject_wish(site_id: str, wish_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    _, site = find_owned_site(db, site_id, user)
    return moderate(db, site, wish_id, "rejected", user)


@router.post("/{site_id}/{wish_id}/highlight")
def highlight_wish(site_id: str, wish_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    collection, site = find_owned_site(db, site_id, user)
    wish = get_wish_or_404(db, site, wish_id)
    toggle_highlight(db, collection, site, wish)
    return serialize(db["wish"].find_one({"_id": wish["_id"]}))


@router.delete("/{site_id}/{wish_id}")
def delete_wish(site_id: str, wish_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    collection, site = find_owned_site(db, site_id, user)
    wish = get_wish_or_404(db, site, wish_id)
    result = db["wish"].delete_one({"_id": wish["_id"]})
    if result.deleted_count and wish.get("is_highlighted"):
        release_highlight_slots(db, collection, site["_id"])
    return {"message": "Wish deleted successfully"}

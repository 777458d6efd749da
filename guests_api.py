import csv
import io
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import StreamingResponse
from pydantic import BaseModel, EmailStr, Field
from pymongo import DESCENDING
from pymongo.errors import DuplicateKeyError

from auth import get_current_user
from database import as_utc, contains, get_db, now_utc, parse_object_id, serialize, serialize_many
from schemas import Guest, GuestStatus
from site_access import client_info, ensure_rsvp_open, find_owned_site, find_published_site

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/guests", tags=["guests"])

CSV_HEADER = [
    "Name", "Email", "Phone", "Status", "Number of Guests", "Guest Names",
    "Meal Choice", "Dietary Restrictions", "Message", "Submitted At",
]


# ---------- Models ----------
class RSVPRequest(BaseModel):
    name: str = Field(..., min_length=1)
    email: Optional[EmailStr] = None
    phone: Optional[str] = None
    status: GuestStatus = "attending"
    party_size: int = Field(1, ge=1, le=50)
    guest_names: List[str] = Field(default_factory=list)
    meal_choice: Optional[str] = None
    dietary_restrictions: Optional[str] = None
    message: Optional[str] = Field(None, max_length=2000)
    custom_fields: Dict[str, Any] = Field(default_factory=dict)


class MicrositeRSVPRequest(RSVPRequest):
    email: EmailStr


class LookupRequest(BaseModel):
    email: EmailStr


class RSVPUpdateRequest(BaseModel):
    email: EmailStr
    status: Optional[GuestStatus] = None
    party_size: Optional[int] = Field(None, ge=1, le=50)
    guest_names: Optional[List[str]] = None
    meal_choice: Optional[str] = None
    dietary_restrictions: Optional[str] = None
    message: Optional[str] = Field(None, max_length=2000)


class StatusUpdateRequest(BaseModel):
    status: GuestStatus


# ---------- Helpers ----------
def guest_stats(db, site_id) -> dict:
    """Counts per status plus the head count of attending parties."""
    groups = {
        g["_id"]: g
        for g in db["guest"].aggregate([
            {"$match": {"site_id": site_id}},
            {"$group": {"_id": "$status", "count": {"$sum": 1}, "total_guests": {"$sum": "$party_size"}}},
        ])
    }
    return {
        "total": sum(g["count"] for g in groups.values()),
        "attending": groups.get("attending", {}).get("count", 0),
        "not_attending": groups.get("not_attending", {}).get("count", 0),
        "maybe": groups.get("maybe", {}).get("count", 0),
        "pending": groups.get("pending", {}).get("count", 0),
        "total_guests": groups.get("attending", {}).get("total_guests", 0),
    }


def guests_to_csv(guests) -> str:
    output = io.StringIO()
    output.write(",".join(CSV_HEADER) + "\n")
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    for g in guests:
        submitted_at = as_utc(g.get("submitted_at") or g.get("created_at"))
        writer.writerow([
            g.get("name") or "",
            g.get("email") or "",
            g.get("phone") or "",
            g.get("status") or "",
            g.get("party_size", 1),
            "; ".join(g.get("guest_names") or []),
            g.get("meal_choice") or "",
            g.get("dietary_restrictions") or "",
            g.get("message") or "",
            submitted_at.isoformat() if submitted_at else "",
        ])
    return output.getvalue()


def upsert_rsvp(db, site: dict, payload: MicrositeRSVPRequest, request: Request):
    """Create or update the guest keyed by (site, email). Returns ``(guest, created)``."""
    email = payload.email.lower()
    updates = payload.model_dump(exclude={"email"})
    updates["updated_at"] = now_utc()
    on_insert = {"submitted_at": now_utc(), "created_at": now_utc(), **client_info(request)}
    try:
        result = db["guest"].update_one(
            {"site_id": site["_id"], "email": email},
            {"$set": updates, "$setOnInsert": on_insert},
            upsert=True,
        )
    except DuplicateKeyError:
        # concurrent insert for the same email won
        result = db["guest"].update_one({"site_id": site["_id"], "email": email}, {"$set": updates})
    created = result.upserted_id is not None
    guest = db["guest"].find_one({"site_id": site["_id"], "email": email})
    return guest, created


# ---------- Public ----------
@router.post("/{site_id}/rsvp", status_code=201)
def submit_rsvp(site_id: str, payload: RSVPRequest, request: Request, db=Depends(get_db)):
    collection, site = find_published_site(db, site_id)
    ensure_rsvp_open(site)
    data = payload.model_dump()
    data["email"] = payload.email.lower() if payload.email else None
    doc = Guest(site_id=site["_id"], submitted_at=now_utc(), **data, **client_info(request)).model_dump()
    doc["created_at"] = doc["updated_at"] = now_utc()

    if doc["email"]:
        on_insert = {k: v for k, v in doc.items() if k not in ("site_id", "email")}
        try:
            result = db["guest"].update_one(
                {"site_id": site["_id"], "email": doc["email"]},
                {"$setOnInsert": on_insert},
                upsert=True,
            )
        except DuplicateKeyError:
            result = None
        if result is None or result.upserted_id is None:
            raise HTTPException(400, "You have already submitted an RSVP")
        guest_id = result.upserted_id
    else:
        guest_id = db["guest"].insert_one(doc).inserted_id

    db[collection].update_one({"_id": site["_id"]}, {"$inc": {"stats.rsvp_count": 1}})
    logger.info("RSVP received for %s %s", collection, site["_id"])
    return {"message": "RSVP submitted successfully", "guest": serialize(db["guest"].find_one({"_id": guest_id}))}


@router.post("/{site_id}/rsvp/lookup")
def lookup_rsvp(site_id: str, payload: LookupRequest, db=Depends(get_db)):
    _, site = find_published_site(db, site_id)
    guest = db["guest"].find_one({"site_id": site["_id"], "email": payload.email.lower()})
    if not guest:
        raise HTTPException(404, "No RSVP found for this email")
    return serialize(guest)


@router.put("/{site_id}/rsvp")
def update_rsvp(site_id: str, payload: RSVPUpdateRequest, db=Depends(get_db)):
    _, site = find_published_site(db, site_id)
    ensure_rsvp_open(site)
    filt = {"site_id": site["_id"], "email": payload.email.lower()}
    guest = db["guest"].find_one(filt)
    if not guest:
        raise HTTPException(404, "No RSVP found for this email")
    updates = payload.model_dump(exclude={"email"}, exclude_none=True)
    updates["updated_at"] = now_utc()
    db["guest"].update_one({"_id": guest["_id"]}, {"$set": updates})
    return {"message": "RSVP updated successfully", "guest": serialize(db["guest"].find_one({"_id": guest["_id"]}))}


# ---------- Owner ----------
@router.get("/{site_id}")
def list_guests(
    site_id: str,
    status: Optional[str] = None,
    search: Optional[str] = None,
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    _, site = find_owned_site(db, site_id, user)
    filt: Dict[str, Any] = {"site_id": site["_id"]}
    if status and status != "all":
        filt["status"] = status
    if search:
        filt["$or"] = [
            {"name": contains(search)},
            {"email": contains(search)},
            {"message": contains(search)},
        ]
    guests = db["guest"].find(filt).sort("submitted_at", DESCENDING)
    return {"guests": serialize_many(guests)}


@router.get("/{site_id}/stats")
def get_guest_stats(site_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    _, site = find_owned_site(db, site_id, user)
    return guest_stats(db, site["_id"])


@router.get("/{site_id}/export")
def export_guests(site_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    _, site = find_owned_site(db, site_id, user)
    guests = db["guest"].find({"site_id": site["_id"]}).sort("submitted_at", DESCENDING)
    body = guests_to_csv(guests)
    return StreamingResponse(
        iter([body]),
        media_type="text/csv",
        headers={"Content-Disposition": f'attachment; filename="guests-{site["slug"]}.csv"'},
    )


@router.put("/{site_id}/{guest_id}/status")
def update_guest_status(
    site_id: str,
    guest_id: str,
    payload: StatusUpdateRequest,
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    _, site = find_owned_site(db, site_id, user)
    filt = {"_id": parse_object_id(guest_id), "site_id": site["_id"]}
    result = db["guest"].update_one(filt, {"$set": {"status": payload.status, "updated_at": now_utc()}})
    if not result.matched_count:
        raise HTTPException(404, "Guest not found")
    return serialize(db["guest"].find_one(filt))


@router.delete("/{site_id}/{guest_id}")
def delete_guest(site_id: str, guest_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    _, site = find_owned_site(db, site_id, user)
    result = db["guest"].delete_one({"_id": parse_object_id(guest_id), "site_id": site["_id"]})
    if not result.deleted_count:
        raise HTTPException(404, "Guest not found")
    return {"message": "Guest deleted successfully"}

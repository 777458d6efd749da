"""
Microsites: a user's event page bound to one template version.

Each microsite owns one section document per template section of its bound
version, seeded from the section's sample values. Section documents are
addressed by the template ``section_id``, which is stable across versions.
"""
import copy
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import HTMLResponse
from pydantic import BaseModel, Field
from pymongo import ASCENDING, DESCENDING, ReturnDocument
from pymongo.errors import PyMongoError

from auth import get_current_user
from database import (
    contains,
    create_document,
    create_documents,
    discard_documents,
    get_db,
    now_utc,
    parse_object_id,
    serialize,
    serialize_many,
)
from guests_api import MicrositeRSVPRequest, guest_stats, upsert_rsvp
from renderer import find_by_id, render_page
from schemas import (
    DeviceMode,
    Microsite,
    MicrositeSection,
    SettingsUpdate,
    unique_slug,
    validate_section_values,
)
from site_access import ensure_rsvp_open, ensure_wishes_open
from wishes_api import PUBLIC_WISH_FIELDS, WishRequest, create_wish, wish_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/microsites", tags=["microsites"])

PUBLIC_WISH_LIMIT = 50


# ---------- Models ----------
class MicrositeCreate(BaseModel):
    template_id: str
    title: str = Field(..., min_length=1, max_length=200)


class MicrositeUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    color_scheme: Optional[str] = None
    font_pair: Optional[str] = None
    settings: Optional[SettingsUpdate] = None


class SectionUpdate(BaseModel):
    values: Optional[Dict[str, Any]] = None
    enabled: Optional[bool] = None
    order: Optional[int] = Field(None, ge=0)


class ReorderRequest(BaseModel):
    section_order: List[str]


# ---------- Helpers ----------
def get_owned_microsite(db, microsite_id: str, user: dict) -> dict:
    microsite = db["microsite"].find_one({"_id": parse_object_id(microsite_id), "user_id": user["_id"]})
    if not microsite:
        raise HTTPException(404, "Microsite not found")
    return microsite


def get_published_microsite(db, slug: str) -> dict:
    microsite = db["microsite"].find_one({"slug": slug, "status": "published"})
    if not microsite:
        raise HTTPException(404, "Event not found")
    return microsite


def get_template_sections(db, version_id) -> List[dict]:
    return list(db["templatesection"].find({"version_id": version_id}).sort("order", ASCENDING))


def get_sections(db, microsite_id, enabled_only: bool = False) -> List[dict]:
    filt: Dict[str, Any] = {"microsite_id": microsite_id}
    if enabled_only:
        filt["enabled"] = True
    return list(db["micrositesection"].find(filt).sort("order", ASCENDING))


def get_section_or_404(db, microsite: dict, section_id: str) -> dict:
    section = db["micrositesection"].find_one({"microsite_id": microsite["_id"], "section_id": section_id})
    if not section:
        raise HTTPException(404, "Section not found")
    return section


def get_template_section(db, microsite: dict, section_id: str) -> Optional[dict]:
    return db["templatesection"].find_one({"version_id": microsite["version_id"], "section_id": section_id})


def ensure_can_disable(template_section: Optional[dict]) -> None:
    if template_section and template_section.get("can_disable") is False:
        raise HTTPException(400, f"Section '{template_section['name']}' cannot be disabled")


def approved_wishes(db, microsite_id) -> List[dict]:
    return list(
        db["wish"].find({"site_id": microsite_id, "status": "approved"}, PUBLIC_WISH_FIELDS)
        .sort("submitted_at", DESCENDING)
        .limit(PUBLIC_WISH_LIMIT)
    )


def reload(db, microsite: dict) -> dict:
    return serialize(db["microsite"].find_one({"_id": microsite["_id"]}))


# ---------- Owner ----------
@router.post("", status_code=201)
def create_microsite(payload: MicrositeCreate, user: dict = Depends(get_current_user), db=Depends(get_db)):
    template = db["template"].find_one({"_id": parse_object_id(payload.template_id)})
    if not template:
        raise HTTPException(404, "Template not found")
    version = db["templateversion"].find_one(
        {"template_id": template["_id"], "version": template.get("current_version", 1)}
    )
    if not version:
        raise HTTPException(404, "Template version not found")

    microsite = Microsite(
        user_id=user["_id"],
        template_id=template["_id"],
        version_id=version["_id"],
        title=payload.title,
        slug=unique_slug(payload.title),
        color_scheme=version.get("default_color_scheme", ""),
        font_pair=version.get("default_font_pair", ""),
    )
    created = []
    try:
        microsite_id = parse_object_id(create_document(db, "microsite", microsite))
        created.append(("microsite", microsite_id))
        section_docs = [
            MicrositeSection(
                microsite_id=microsite_id,
                section_id=s["section_id"],
                type=s["type"],
                order=s["order"],
                values=copy.deepcopy(s.get("sample_values") or {}),
            ).model_dump()
            for s in get_template_sections(db, version["_id"])
        ]
        create_documents(db, "micrositesection", section_docs, created)
    except PyMongoError:
        discard_documents(db, created)
        raise

    db["template"].update_one({"_id": template["_id"]}, {"$inc": {"usage_count": 1}})
    logger.info("Microsite %s created from template %s v%d", microsite.slug, template["slug"], version["version"])
    return {
        "microsite": serialize(db["microsite"].find_one({"_id": microsite_id})),
        "sections": serialize_many(get_sections(db, microsite_id)),
    }


@router.get("")
def list_microsites(
    status: Optional[str] = None,
    search: Optional[str] = None,
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    filt: Dict[str, Any] = {"user_id": user["_id"]}
    if status and status != "all":
        filt["status"] = status
    if search:
        filt["title"] = contains(search)
    microsites = []
    for microsite in db["microsite"].find(filt).sort("updated_at", DESCENDING):
        item = serialize(microsite)
        item["template"] = serialize(db["template"].find_one(
            {"_id": microsite["template_id"]}, {"name": 1, "category": 1, "thumbnail": 1}
        ))
        microsites.append(item)
    return {"microsites": microsites}


@router.get("/public/{slug}")
def get_public_microsite(slug: str, db=Depends(get_db)):
    microsite = db["microsite"].find_one_and_update(
        {"slug": slug, "status": "published"},
        {"$inc": {"view_count": 1}, "$set": {"last_viewed_at": now_utc()}},
        return_document=ReturnDocument.AFTER,
    )
    if not microsite:
        raise HTTPException(404, "Event not found")
    version = db["templateversion"].find_one({"_id": microsite["version_id"]})
    return {
        "microsite": {
            "title": microsite["title"],
            "slug": microsite["slug"],
            "color_scheme": microsite.get("color_scheme"),
            "font_pair": microsite.get("font_pair"),
            "settings": microsite.get("settings"),
        },
        "version": {
            "color_schemes": version.get("color_schemes", []),
            "font_pairs": version.get("font_pairs", []),
        } if version else None,
        "template_sections": serialize_many(get_template_sections(db, microsite["version_id"])),
        "sections": serialize_many(get_sections(db, microsite["_id"], enabled_only=True)),
        "wishes": serialize_many(approved_wishes(db, microsite["_id"])),
    }


@router.get("/public/{slug}/render", response_class=HTMLResponse)
def render_public_microsite(slug: str, device_mode: DeviceMode = "desktop", db=Depends(get_db)):
    microsite = get_published_microsite(db, slug)
    version = db["templateversion"].find_one({"_id": microsite["version_id"]}) or {}
    html = render_page(
        microsite["title"],
        get_sections(db, microsite["_id"], enabled_only=True),
        get_template_sections(db, microsite["version_id"]),
        find_by_id(version.get("color_schemes", []), microsite.get("color_scheme")),
        find_by_id(version.get("font_pairs", []), microsite.get("font_pair")),
        device_mode,
        wishes=approved_wishes(db, microsite["_id"]),
    )
    return HTMLResponse(html)


@router.post("/public/{slug}/rsvp")
def submit_microsite_rsvp(
    slug: str,
    payload: MicrositeRSVPRequest,
    request: Request,
    response: Response,
    db=Depends(get_db),
):
    microsite = get_published_microsite(db, slug)
    ensure_rsvp_open(microsite)
    guest, created = upsert_rsvp(db, microsite, payload, request)
    if created:
        db["microsite"].update_one({"_id": microsite["_id"]}, {"$inc": {"stats.rsvp_count": 1}})
        response.status_code = 201
        return {"message": "RSVP submitted successfully", "guest": serialize(guest)}
    return {"message": "RSVP updated successfully", "guest": serialize(guest)}


@router.post("/public/{slug}/wish", status_code=201)
def submit_microsite_wish(slug: str, payload: WishRequest, request: Request, db=Depends(get_db)):
    microsite = get_published_microsite(db, slug)
    ensure_wishes_open(microsite)
    wish = create_wish(db, "microsite", microsite, payload, request)
    if wish["status"] == "pending":
        message = "Wish submitted and pending approval"
    else:
        message = "Wish submitted successfully"
    return {"message": message, "wish": serialize(wish)}


@router.get("/{microsite_id}")
def get_microsite(microsite_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    microsite = get_owned_microsite(db, microsite_id, user)
    item = serialize(microsite)
    item["template"] = serialize(db["template"].find_one(
        {"_id": microsite["template_id"]}, {"name": 1, "category": 1, "thumbnail": 1}
    ))
    return {
        "microsite": item,
        "version": serialize(db["templateversion"].find_one({"_id": microsite["version_id"]})),
        "template_sections": serialize_many(get_template_sections(db, microsite["version_id"])),
        "sections": serialize_many(get_sections(db, microsite["_id"])),
    }


@router.put("/{microsite_id}")
def update_microsite(
    microsite_id: str,
    payload: MicrositeUpdate,
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    microsite = get_owned_microsite(db, microsite_id, user)
    version = db["templateversion"].find_one({"_id": microsite["version_id"]}) or {}
    if payload.color_scheme is not None and not find_by_id(version.get("color_schemes", []), payload.color_scheme):
        raise HTTPException(400, f"Unknown color scheme: {payload.color_scheme}")
    if payload.font_pair is not None and not find_by_id(version.get("font_pairs", []), payload.font_pair):
        raise HTTPException(400, f"Unknown font pair: {payload.font_pair}")

    updates = payload.model_dump(exclude_none=True, exclude={"settings"})
    if payload.settings is not None:
        updates["settings"] = payload.settings.merge_into(microsite.get("settings"))
    updates["updated_at"] = now_utc()
    db["microsite"].update_one({"_id": microsite["_id"]}, {"$set": updates})
    return reload(db, microsite)


@router.delete("/{microsite_id}")
def delete_microsite(microsite_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    microsite = get_owned_microsite(db, microsite_id, user)
    db["micrositesection"].delete_many({"microsite_id": microsite["_id"]})
    db["guest"].delete_many({"site_id": microsite["_id"]})
    db["wish"].delete_many({"site_id": microsite["_id"]})
    db["microsite"].delete_one({"_id": microsite["_id"]})
    logger.info("Microsite %s deleted", microsite["slug"])
    return {"message": "Microsite deleted successfully"}


@router.post("/{microsite_id}/publish")
def publish_microsite(microsite_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    microsite = get_owned_microsite(db, microsite_id, user)
    db["microsite"].update_one(
        {"_id": microsite["_id"]},
        {"$set": {"status": "published", "published_at": now_utc(), "updated_at": now_utc()}},
    )
    logger.info("Microsite %s published", microsite["slug"])
    return reload(db, microsite)


@router.post("/{microsite_id}/unpublish")
def unpublish_microsite(microsite_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    microsite = get_owned_microsite(db, microsite_id, user)
    db["microsite"].update_one({"_id": microsite["_id"]}, {"$set": {"status": "draft", "updated_at": now_utc()}})
    return reload(db, microsite)


@router.get("/{microsite_id}/stats")
def get_microsite_stats(microsite_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    microsite = get_owned_microsite(db, microsite_id, user)
    return {
        "views": microsite.get("view_count", 0),
        "unique_views": microsite.get("unique_view_count", 0),
        "guests": guest_stats(db, microsite["_id"]),
        "wishes": wish_stats(db, microsite["_id"]),
    }


# ---------- Sections ----------
@router.post("/{microsite_id}/sections/reorder")
def reorder_microsite_sections(
    microsite_id: str,
    payload: ReorderRequest,
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    microsite = get_owned_microsite(db, microsite_id, user)
    # sections missing from section_order keep their rank
    for index, section_id in enumerate(payload.section_order):
        db["micrositesection"].update_one(
            {"microsite_id": microsite["_id"], "section_id": section_id},
            {"$set": {"order": index, "updated_at": now_utc()}},
        )
    return {"sections": serialize_many(get_sections(db, microsite["_id"]))}


@router.put("/{microsite_id}/sections/{section_id}")
def update_microsite_section(
    microsite_id: str,
    section_id: str,
    payload: SectionUpdate,
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    microsite = get_owned_microsite(db, microsite_id, user)
    section = get_section_or_404(db, microsite, section_id)
    template_section = get_template_section(db, microsite, section_id)

    if payload.values is not None and template_section:
        errors = validate_section_values(template_section.get("fields"), payload.values)
        if errors:
            raise HTTPException(400, {"error": "Invalid section values", "errors": errors})
    if payload.enabled is False and section.get("enabled", True):
        ensure_can_disable(template_section)

    updates = payload.model_dump(exclude_none=True)
    updates["updated_at"] = now_utc()
    db["micrositesection"].update_one({"_id": section["_id"]}, {"$set": updates})
    db["microsite"].update_one({"_id": microsite["_id"]}, {"$set": {"updated_at": now_utc()}})
    return serialize(db["micrositesection"].find_one({"_id": section["_id"]}))


@router.post("/{microsite_id}/sections/{section_id}/toggle")
def toggle_section(
    microsite_id: str,
    section_id: str,
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    microsite = get_owned_microsite(db, microsite_id, user)
    section = get_section_or_404(db, microsite, section_id)
    enabled = section.get("enabled", True)
    if enabled:
        ensure_can_disable(get_template_section(db, microsite, section_id))
    db["micrositesection"].update_one(
        {"_id": section["_id"]},
        {"$set": {"enabled": not enabled, "updated_at": now_utc()}},
    )
    return serialize(db["micrositesection"].find_one({"_id": section["_id"]}))

"""
Legacy event sites. Section content is embedded in the site document;
new events should be created as microsites.
"""
import copy
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from pymongo import DESCENDING, ReturnDocument

from auth import get_current_user
from database import contains, create_document, get_db, now_utc, parse_object_id, serialize, serialize_many
from guests_api import guest_stats
from renderer import find_by_id
from schemas import SectionContent, SettingsUpdate, Site, missing_required_fields, unique_slug
from wishes_api import wish_stats

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sites", tags=["sites"])


# ---------- Models ----------
class SiteCreate(BaseModel):
    template_id: str
    title: str = Field(..., min_length=1, max_length=200)
    description: str = ""


class SiteUpdate(BaseModel):
    title: Optional[str] = Field(None, min_length=1, max_length=200)
    description: Optional[str] = None
    selected_color_scheme: Optional[str] = None
    selected_font_pair: Optional[str] = None
    settings: Optional[SettingsUpdate] = None


class SlugUpdate(BaseModel):
    slug: str = Field(..., min_length=3, max_length=100, pattern=r"^[a-z0-9]+(?:-[a-z0-9]+)*$")


class SectionContentUpdate(BaseModel):
    content: Optional[Dict[str, Any]] = None
    visible: Optional[bool] = None


class ReorderRequest(BaseModel):
    section_order: List[str]


# ---------- Helpers ----------
def get_owned_site(db, site_id: str, user: dict) -> dict:
    site = db["site"].find_one({"_id": parse_object_id(site_id), "user_id": user["_id"]})
    if not site:
        raise HTTPException(404, "Site not found")
    return site


def get_site_version(db, site: dict) -> Optional[dict]:
    return db["templateversion"].find_one(
        {"template_id": site["template_id"], "version": site.get("template_version", 1)}
    )


def get_site_template_sections(db, site: dict) -> List[dict]:
    version = get_site_version(db, site)
    if not version:
        return []
    return list(db["templatesection"].find({"version_id": version["_id"]}).sort("order", 1))


def template_summary(db, template_id) -> Optional[dict]:
    template = db["template"].find_one({"_id": template_id}, {"name": 1, "slug": 1, "thumbnail": 1, "category": 1})
    return serialize(template)


def reload(db, site: dict) -> dict:
    return serialize(db["site"].find_one({"_id": site["_id"]}))


# ---------- Routes ----------
@router.post("", status_code=201)
def create_site(payload: SiteCreate, user: dict = Depends(get_current_user), db=Depends(get_db)):
    template = db["template"].find_one({"_id": parse_object_id(payload.template_id)})
    if not template:
        raise HTTPException(404, "Template not found")
    if not template.get("is_active"):
        raise HTTPException(400, "Template is not published")

    version = db["templateversion"].find_one({"template_id": template["_id"]}, sort=[("version", DESCENDING)])
    sections = []
    color_scheme = font_pair = ""
    if version:
        for section in db["templatesection"].find({"version_id": version["_id"]}).sort("order", 1):
            sections.append(SectionContent(
                section_id=section["section_id"],
                order=section["order"],
                content=copy.deepcopy(section.get("sample_values") or {}),
            ))
        schemes = version.get("color_schemes") or []
        fonts = version.get("font_pairs") or []
        color_scheme = version.get("default_color_scheme") or (schemes[0]["id"] if schemes else "")
        font_pair = version.get("default_font_pair") or (fonts[0]["id"] if fonts else "")

    site = Site(
        user_id=user["_id"],
        template_id=template["_id"],
        template_version=version["version"] if version else template.get("current_version", 1),
        title=payload.title,
        slug=unique_slug(payload.title),
        description=payload.description,
        sections=sections,
        selected_color_scheme=color_scheme,
        selected_font_pair=font_pair,
    )
    site_id = create_document(db, "site", site)
    db["template"].update_one({"_id": template["_id"]}, {"$inc": {"usage_count": 1}})
    logger.info("Site %s created from template %s", site.slug, template["slug"])
    return serialize(db["site"].find_one({"_id": parse_object_id(site_id)}))


@router.get("")
def list_sites(
    status: Optional[str] = None,
    search: Optional[str] = None,
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    filt: Dict[str, Any] = {"user_id": user["_id"]}
    if status and status != "all":
        filt["status"] = status
    if search:
        filt["$or"] = [
            {"title": contains(search)},
            {"description": contains(search)},
        ]
    sites = []
    for site in db["site"].find(filt).sort("updated_at", DESCENDING):
        item = serialize(site)
        item["template"] = template_summary(db, site["template_id"])
        sites.append(item)
    return {"sites": sites}


@router.get("/public/{slug}")
def get_public_site(slug: str, db=Depends(get_db)):
    site = db["site"].find_one_and_update(
        {"slug": slug, "status": "published"},
        {"$inc": {"stats.views": 1}},
        return_document=ReturnDocument.AFTER,
    )
    if not site:
        raise HTTPException(404, "Site not found")
    version = get_site_version(db, site)
    item = serialize(site)
    item.pop("user_id", None)
    return {
        "site": item,
        "template": template_summary(db, site["template_id"]),
        "color_schemes": version.get("color_schemes", []) if version else [],
        "font_pairs": version.get("font_pairs", []) if version else [],
        "template_sections": serialize_many(get_site_template_sections(db, site)),
    }


@router.get("/{site_id}")
def get_site(site_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    site = get_owned_site(db, site_id, user)
    version = get_site_version(db, site)
    return {
        "site": serialize(site),
        "template": template_summary(db, site["template_id"]),
        "version": serialize(version),
        "template_sections": serialize_many(get_site_template_sections(db, site)),
    }


@router.put("/{site_id}")
def update_site(site_id: str, payload: SiteUpdate, user: dict = Depends(get_current_user), db=Depends(get_db)):
    site = get_owned_site(db, site_id, user)
    version = get_site_version(db, site) or {}
    if payload.selected_color_scheme is not None and not find_by_id(
        version.get("color_schemes", []), payload.selected_color_scheme
    ):
        raise HTTPException(400, f"Unknown color scheme: {payload.selected_color_scheme}")
    if payload.selected_font_pair is not None and not find_by_id(
        version.get("font_pairs", []), payload.selected_font_pair
    ):
        raise HTTPException(400, f"Unknown font pair: {payload.selected_font_pair}")
    updates = payload.model_dump(exclude_none=True, exclude={"settings"})
    if payload.settings is not None:
        updates["settings"] = payload.settings.merge_into(site.get("settings"))
    updates["updated_at"] = now_utc()
    db["site"].update_one({"_id": site["_id"]}, {"$set": updates})
    return reload(db, site)


@router.put("/{site_id}/slug")
def update_site_slug(site_id: str, payload: SlugUpdate, user: dict = Depends(get_current_user), db=Depends(get_db)):
    site = get_owned_site(db, site_id, user)
    taken = db["site"].find_one({"slug": payload.slug, "_id": {"$ne": site["_id"]}}) or db["microsite"].find_one(
        {"slug": payload.slug}
    )
    if taken:
        raise HTTPException(400, "This URL is already taken")
    db["site"].update_one({"_id": site["_id"]}, {"$set": {"slug": payload.slug, "updated_at": now_utc()}})
    return reload(db, site)


@router.put("/{site_id}/sections/{section_id}")
def update_section_content(
    site_id: str,
    section_id: str,
    payload: SectionContentUpdate,
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    site = get_owned_site(db, site_id, user)
    if not any(s["section_id"] == section_id for s in site.get("sections", [])):
        raise HTTPException(404, "Section not found")
    if payload.visible is False:
        template_section = next(
            (s for s in get_site_template_sections(db, site) if s["section_id"] == section_id), None
        )
        if template_section and template_section.get("can_disable") is False:
            raise HTTPException(400, f"Section '{template_section['name']}' cannot be hidden")
    updates: Dict[str, Any] = {"updated_at": now_utc()}
    if payload.content is not None:
        updates["sections.$.content"] = payload.content
    if payload.visible is not None:
        updates["sections.$.visible"] = payload.visible
    db["site"].update_one({"_id": site["_id"], "sections.section_id": section_id}, {"$set": updates})
    return reload(db, site)


@router.post("/{site_id}/sections/reorder")
def reorder_site_sections(
    site_id: str,
    payload: ReorderRequest,
    user: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    site = get_owned_site(db, site_id, user)
    known = {s["section_id"] for s in site.get("sections", [])}
    for index, section_id in enumerate(payload.section_order):
        if section_id in known:
            db["site"].update_one(
                {"_id": site["_id"], "sections.section_id": section_id},
                {"$set": {"sections.$.order": index}},
            )
    db["site"].update_one({"_id": site["_id"]}, {"$set": {"updated_at": now_utc()}})
    return reload(db, site)


@router.post("/{site_id}/publish")
def publish_site(site_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    site = get_owned_site(db, site_id, user)
    sections = site.get("sections", [])
    missing = missing_required_fields(
        get_site_template_sections(db, site),
        {s["section_id"]: s.get("content") for s in sections},
        {s["section_id"]: s.get("visible", True) for s in sections},
    )
    if missing:
        raise HTTPException(400, {"error": "Please fill in all required fields", "missing_fields": missing})
    db["site"].update_one(
        {"_id": site["_id"]},
        {"$set": {"status": "published", "published_at": now_utc(), "updated_at": now_utc()}},
    )
    logger.info("Site %s published", site["slug"])
    return reload(db, site)


@router.post("/{site_id}/unpublish")
def unpublish_site(site_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    site = get_owned_site(db, site_id, user)
    db["site"].update_one({"_id": site["_id"]}, {"$set": {"status": "draft", "updated_at": now_utc()}})
    return reload(db, site)


@router.delete("/{site_id}")
def delete_site(site_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    site = get_owned_site(db, site_id, user)
    db["site"].delete_one({"_id": site["_id"]})
    guests = db["guest"].delete_many({"site_id": site["_id"]}).deleted_count
    wishes = db["wish"].delete_many({"site_id": site["_id"]}).deleted_count
    logger.info("Site %s deleted with %d guests and %d wishes", site["slug"], guests, wishes)
    return {"message": "Site deleted successfully"}


@router.get("/{site_id}/stats")
def get_site_stats(site_id: str, user: dict = Depends(get_current_user), db=Depends(get_db)):
    site = get_owned_site(db, site_id, user)
    stats = site.get("stats", {})
    return {
        "views": stats.get("views", 0),
        "unique_visitors": stats.get("unique_visitors", 0),
        "rsvp": guest_stats(db, site["_id"]),
        "wishes": wish_stats(db, site["_id"]),
    }

"""
Template catalog: templates, their immutable-once-used versions, and the
section definitions of each version.

A template is created at version 1. Microsites bind to a concrete version, so
sections of a version referenced by a published microsite cannot be edited;
``new-version`` copies the current version forward instead.
"""
import logging
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, Field
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import DuplicateKeyError, PyMongoError

from auth import get_current_user, require_admin
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
from renderer import find_by_id, render_page
from schemas import (
    ColorScheme,
    DeviceMode,
    FieldDefinition,
    FontPair,
    LifecycleStatus,
    SampleProfile,
    SectionType,
    Template,
    TemplateCategory,
    TemplateSection,
    TemplateVersion,
    generate_id,
    unique_slug,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/templates", tags=["templates"])

SORTABLE_FIELDS = {"created_at", "updated_at", "name", "usage_count", "category", "status"}


# ---------- Models ----------
class SectionPayload(BaseModel):
    section_id: Optional[str] = None
    type: SectionType
    name: str = Field(..., min_length=1)
    description: str = ""
    is_required: bool = False
    can_disable: bool = True
    fields: List[FieldDefinition] = Field(default_factory=list)
    sample_values: Dict[str, Any] = Field(default_factory=dict)


class TemplateCreate(BaseModel):
    name: str = Field(..., min_length=1)
    description: str = ""
    category: TemplateCategory = "other"
    thumbnail: str = ""
    preview_images: List[str] = Field(default_factory=list)
    color_schemes: List[ColorScheme] = Field(default_factory=list)
    font_pairs: List[FontPair] = Field(default_factory=list)
    sample_profiles: List[SampleProfile] = Field(default_factory=list)
    default_color_scheme: Optional[str] = None
    default_font_pair: Optional[str] = None
    changelog: str = "Initial version"
    sections: List[SectionPayload] = Field(default_factory=list)


class TemplateUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    category: Optional[TemplateCategory] = None
    thumbnail: Optional[str] = None
    preview_images: Optional[List[str]] = None
    status: Optional[LifecycleStatus] = None


class SectionUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=1)
    description: Optional[str] = None
    is_required: Optional[bool] = None
    can_disable: Optional[bool] = None
    fields: Optional[List[FieldDefinition]] = None
    sample_values: Optional[Dict[str, Any]] = None
    order: Optional[int] = Field(None, ge=0)


class ReorderRequest(BaseModel):
    section_order: List[str]


class NewVersionRequest(BaseModel):
    changelog: str = ""


class PreviewRequest(BaseModel):
    color_scheme: Optional[str] = None
    font_pair: Optional[str] = None
    device_mode: DeviceMode = "desktop"


# ---------- Helpers ----------
def get_template_or_404(db, template_id: str) -> dict:
    template = db["template"].find_one({"_id": parse_object_id(template_id)})
    if not template:
        raise HTTPException(404, "Template not found")
    return template


def get_current_version(db, template: dict) -> dict:
    version = db["templateversion"].find_one(
        {"template_id": template["_id"], "version": template.get("current_version", 1)}
    )
    if not version:
        raise HTTPException(404, "Template version not found")
    return version


def get_version_sections(db, version_id) -> List[dict]:
    return list(db["templatesection"].find({"version_id": version_id}).sort("order", ASCENDING))


def template_bundle(db, template: dict) -> dict:
    version = get_current_version(db, template)
    return {
        "template": serialize(template),
        "version": serialize(version),
        "sections": serialize_many(get_version_sections(db, version["_id"])),
    }


def build_section_docs(payloads: List[SectionPayload]) -> List[dict]:
    """Validate section payloads into documents; ``version_id`` is filled in at insert."""
    docs = []
    seen = set()
    for order, payload in enumerate(payloads):
        data = payload.model_dump()
        if not data["section_id"]:
            data.pop("section_id")
        doc = TemplateSection(version_id=None, order=order, **data).model_dump()
        if doc["section_id"] in seen:
            raise HTTPException(400, f"Duplicate section id: {doc['section_id']}")
        seen.add(doc["section_id"])
        docs.append(doc)
    return docs


def copy_section_docs(sections: List[dict], fresh_ids: bool = False) -> List[dict]:
    docs = []
    for section in sections:
        doc = TemplateSection(
            version_id=None,
            **{k: v for k, v in section.items() if k not in ("_id", "version_id", "created_at", "updated_at")},
        ).model_dump()
        if fresh_ids:
            doc["section_id"] = generate_id("sec")
        docs.append(doc)
    return docs


def insert_version(db, version: TemplateVersion, section_docs: List[dict], created: list):
    version_id = parse_object_id(create_document(db, "templateversion", version))
    created.append(("templateversion", version_id))
    for doc in section_docs:
        doc["version_id"] = version_id
    create_documents(db, "templatesection", section_docs, created)
    return version_id


def create_template_with_version(db, template: Template, version_data: dict, section_docs: List[dict]) -> dict:
    """Insert a template, its first version and sections; all or nothing."""
    created = []
    try:
        template_id = parse_object_id(create_document(db, "template", template))
        created.append(("template", template_id))
        version = TemplateVersion(template_id=template_id, version=template.current_version, **version_data)
        insert_version(db, version, section_docs, created)
    except (PyMongoError, ValueError):
        discard_documents(db, created)
        raise
    return db["template"].find_one({"_id": template_id})


def version_data_from(payload: dict) -> dict:
    color_schemes = payload.get("color_schemes") or []
    font_pairs = payload.get("font_pairs") or []
    return {
        "color_schemes": color_schemes,
        "font_pairs": font_pairs,
        "sample_profiles": payload.get("sample_profiles") or [],
        "default_color_scheme": payload.get("default_color_scheme") or (color_schemes[0]["id"] if color_schemes else ""),
        "default_font_pair": payload.get("default_font_pair") or (font_pairs[0]["id"] if font_pairs else ""),
        "default_sample_profile": payload.get("default_sample_profile") or "default",
        "changelog": payload.get("changelog") or "",
    }


def ensure_version_editable(db, template: dict, version: dict) -> None:
    in_use = db["microsite"].count_documents({"version_id": version["_id"], "status": "published"})
    in_use += db["site"].count_documents({
        "template_id": template["_id"], "template_version": version["version"], "status": "published",
    })
    if in_use:
        raise HTTPException(
            400,
            "This template version is used by published microsites. Create a new version to change its sections",
        )


def touch(db, collection_name: str, doc_id) -> None:
    db[collection_name].update_one({"_id": doc_id}, {"$set": {"updated_at": now_utc()}})


# ---------- Catalog ----------
@router.post("", status_code=201)
def create_template(payload: TemplateCreate, user: dict = Depends(require_admin), db=Depends(get_db)):
    section_docs = build_section_docs(payload.sections)
    template = Template(
        name=payload.name,
        slug=unique_slug(payload.name),
        description=payload.description,
        category=payload.category,
        thumbnail=payload.thumbnail,
        preview_images=payload.preview_images,
        created_by=user["id"],
    )
    doc = create_template_with_version(db, template, version_data_from(payload.model_dump()), section_docs)
    logger.info("Template %s created with %d sections", doc["slug"], len(section_docs))
    return template_bundle(db, doc)


@router.get("")
def list_templates(
    page: int = 1,
    limit: int = 10,
    status: Optional[str] = None,
    category: Optional[str] = None,
    search: Optional[str] = None,
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
    if status:
        filt["status"] = status
    if category and category != "all":
        filt["category"] = category
    if search:
        filt["$or"] = [
            {"name": contains(search)},
            {"description": contains(search)},
        ]
    direction = ASCENDING if sort_order == "asc" else DESCENDING
    total = db["template"].count_documents(filt)
    items = list(db["template"].find(filt).sort(sort_by, direction).skip((page - 1) * limit).limit(limit))
    return {
        "templates": serialize_many(items),
        "pagination": {"page": page, "limit": limit, "total": total, "pages": (total + limit - 1) // limit},
    }


@router.get("/published")
def list_published_templates(category: Optional[str] = None, search: Optional[str] = None, db=Depends(get_db)):
    filt: Dict[str, Any] = {"status": "published"}
    if category and category != "all":
        filt["category"] = category
    if search:
        filt["$or"] = [
            {"name": contains(search)},
            {"description": contains(search)},
        ]
    templates = []
    for template in db["template"].find(filt).sort([("usage_count", DESCENDING), ("created_at", DESCENDING)]):
        item = serialize(template)
        version = db["templateversion"].find_one(
            {"template_id": template["_id"], "version": template.get("current_version", 1)}
        )
        item["color_schemes"] = version.get("color_schemes", []) if version else []
        item["font_pairs"] = version.get("font_pairs", []) if version else []
        templates.append(item)
    return {"templates": templates}


@router.get("/{template_id}")
def get_template(template_id: str, _: dict = Depends(get_current_user), db=Depends(get_db)):
    return template_bundle(db, get_template_or_404(db, template_id))


@router.get("/{template_id}/versions")
def list_versions(template_id: str, _: dict = Depends(get_current_user), db=Depends(get_db)):
    template = get_template_or_404(db, template_id)
    versions = db["templateversion"].find({"template_id": template["_id"]}).sort("version", DESCENDING)
    return {"versions": serialize_many(versions), "current_version": template.get("current_version", 1)}


@router.put("/{template_id}")
def update_template(template_id: str, payload: TemplateUpdate, _: dict = Depends(require_admin), db=Depends(get_db)):
    template = get_template_or_404(db, template_id)
    updates = payload.model_dump(exclude_none=True)
    if "status" in updates:
        updates["is_active"] = updates["status"] == "published"
    if updates:
        updates["updated_at"] = now_utc()
        db["template"].update_one({"_id": template["_id"]}, {"$set": updates})
    return template_bundle(db, db["template"].find_one({"_id": template["_id"]}))


@router.delete("/{template_id}")
def delete_template(template_id: str, _: dict = Depends(require_admin), db=Depends(get_db)):
    template = get_template_or_404(db, template_id)
    in_use = db["microsite"].count_documents({"template_id": template["_id"]})
    in_use += db["site"].count_documents({"template_id": template["_id"]})
    if in_use:
        raise HTTPException(400, f"Template is used by {in_use} site(s) and cannot be deleted")
    version_ids = [v["_id"] for v in db["templateversion"].find({"template_id": template["_id"]}, {"_id": 1})]
    db["templatesection"].delete_many({"version_id": {"$in": version_ids}})
    db["templateversion"].delete_many({"template_id": template["_id"]})
    db["template"].delete_one({"_id": template["_id"]})
    logger.info("Template %s deleted", template["slug"])
    return {"message": "Template deleted successfully"}


@router.post("/{template_id}/duplicate", status_code=201)
def duplicate_template(template_id: str, user: dict = Depends(require_admin), db=Depends(get_db)):
    source = get_template_or_404(db, template_id)
    version = get_current_version(db, source)
    name = f"{source['name']} (Copy)"
    template = Template(
        name=name,
        slug=unique_slug(name),
        description=source.get("description", ""),
        category=source.get("category", "other"),
        thumbnail=source.get("thumbnail", ""),
        preview_images=source.get("preview_images", []),
        created_by=user["id"],
    )
    version_data = version_data_from({**version, "changelog": f"Duplicated from {source['slug']}"})
    section_docs = copy_section_docs(get_version_sections(db, version["_id"]), fresh_ids=True)
    doc = create_template_with_version(db, template, version_data, section_docs)
    logger.info("Template %s duplicated as %s", source["slug"], doc["slug"])
    return template_bundle(db, doc)


@router.post("/{template_id}/publish")
def publish_template(template_id: str, _: dict = Depends(require_admin), db=Depends(get_db)):
    template = get_template_or_404(db, template_id)
    db["template"].update_one(
        {"_id": template["_id"]},
        {"$set": {"status": "published", "is_active": True, "updated_at": now_utc()}},
    )
    return {"message": "Template published successfully",
            "template": serialize(db["template"].find_one({"_id": template["_id"]}))}


@router.post("/{template_id}/unpublish")
def unpublish_template(template_id: str, _: dict = Depends(require_admin), db=Depends(get_db)):
    template = get_template_or_404(db, template_id)
    db["template"].update_one(
        {"_id": template["_id"]},
        {"$set": {"status": "draft", "is_active": False, "updated_at": now_utc()}},
    )
    return {"message": "Template unpublished successfully",
            "template": serialize(db["template"].find_one({"_id": template["_id"]}))}


@router.post("/{template_id}/preview")
def preview_template(
    template_id: str,
    payload: Optional[PreviewRequest] = None,
    _: dict = Depends(get_current_user),
    db=Depends(get_db),
):
    payload = payload or PreviewRequest()
    template = get_template_or_404(db, template_id)
    version = get_current_version(db, template)
    sections = get_version_sections(db, version["_id"])
    schemes = version.get("color_schemes", [])
    fonts = version.get("font_pairs", [])
    color_scheme = find_by_id(schemes, payload.color_scheme or version.get("default_color_scheme")) or (
        schemes[0] if schemes else None
    )
    font_pair = find_by_id(fonts, payload.font_pair or version.get("default_font_pair")) or (
        fonts[0] if fonts else None
    )
    preview_data = {s["section_id"]: s.get("sample_values", {}) for s in sections}
    page_sections = [
        {"section_id": s["section_id"], "type": s["type"], "order": s["order"], "enabled": True,
         "values": s.get("sample_values", {})}
        for s in sections
    ]
    html = render_page(template["name"], page_sections, sections, color_scheme, font_pair, payload.device_mode)
    return {
        "template": serialize(template),
        "version": serialize(version),
        "sections": serialize_many(sections),
        "preview_data": preview_data,
        "color_scheme": color_scheme,
        "font_pair": font_pair,
        "html": html,
    }


# ---------- Versioning ----------
@router.post("/{template_id}/new-version", status_code=201)
def create_new_version(
    template_id: str,
    payload: Optional[NewVersionRequest] = None,
    _: dict = Depends(require_admin),
    db=Depends(get_db),
):
    payload = payload or NewVersionRequest()
    template = get_template_or_404(db, template_id)
    current = get_current_version(db, template)
    next_number = current["version"] + 1
    version = TemplateVersion(
        template_id=template["_id"],
        version=next_number,
        **version_data_from({**current, "changelog": payload.changelog or f"Version {next_number}"}),
    )
    section_docs = copy_section_docs(get_version_sections(db, current["_id"]))
    created = []
    try:
        insert_version(db, version, section_docs, created)
    except DuplicateKeyError:
        discard_documents(db, created)
        raise HTTPException(400, f"Version {next_number} already exists")
    except PyMongoError:
        discard_documents(db, created)
        raise
    db["template"].update_one(
        {"_id": template["_id"]},
        {"$set": {"current_version": next_number, "updated_at": now_utc()}},
    )
    logger.info("Template %s moved to version %d", template["slug"], next_number)
    return template_bundle(db, db["template"].find_one({"_id": template["_id"]}))


# ---------- Sections of the current version ----------
@router.post("/{template_id}/sections", status_code=201)
def add_section(template_id: str, payload: SectionPayload, _: dict = Depends(require_admin), db=Depends(get_db)):
    template = get_template_or_404(db, template_id)
    version = get_current_version(db, template)
    ensure_version_editable(db, template, version)
    doc = build_section_docs([payload])[0]
    if db["templatesection"].find_one({"version_id": version["_id"], "section_id": doc["section_id"]}):
        raise HTTPException(400, f"Duplicate section id: {doc['section_id']}")
    doc["version_id"] = version["_id"]
    doc["order"] = db["templatesection"].count_documents({"version_id": version["_id"]})
    create_document(db, "templatesection", doc)
    touch(db, "template", template["_id"])
    return template_bundle(db, template)


@router.post("/{template_id}/sections/reorder")
def reorder_sections(template_id: str, payload: ReorderRequest, _: dict = Depends(require_admin), db=Depends(get_db)):
    template = get_template_or_404(db, template_id)
    version = get_current_version(db, template)
    ensure_version_editable(db, template, version)
    # only listed sections are re-ranked
    for index, section_id in enumerate(payload.section_order):
        db["templatesection"].update_one(
            {"version_id": version["_id"], "section_id": section_id},
            {"$set": {"order": index, "updated_at": now_utc()}},
        )
    touch(db, "template", template["_id"])
    return template_bundle(db, template)


@router.put("/{template_id}/sections/{section_id}")
def update_section(
    template_id: str,
    section_id: str,
    payload: SectionUpdate,
    _: dict = Depends(require_admin),
    db=Depends(get_db),
):
    template = get_template_or_404(db, template_id)
    version = get_current_version(db, template)
    ensure_version_editable(db, template, version)
    section = db["templatesection"].find_one({"version_id": version["_id"], "section_id": section_id})
    if not section:
        raise HTTPException(404, "Section not found")
    updates = payload.model_dump(exclude_none=True)
    if payload.fields is not None:
        updates["fields"] = [f.model_dump() for f in payload.fields]
    if updates:
        updates["updated_at"] = now_utc()
        db["templatesection"].update_one({"_id": section["_id"]}, {"$set": updates})
    touch(db, "template", template["_id"])
    return serialize(db["templatesection"].find_one({"_id": section["_id"]}))


@router.delete("/{template_id}/sections/{section_id}")
def delete_section(template_id: str, section_id: str, _: dict = Depends(require_admin), db=Depends(get_db)):
    template = get_template_or_404(db, template_id)
    version = get_current_version(db, template)
    ensure_version_editable(db, template, version)
    result = db["templatesection"].delete_one({"version_id": version["_id"], "section_id": section_id})
    if not result.deleted_count:
        raise HTTPException(404, "Section not found")
    for index, section in enumerate(get_version_sections(db, version["_id"])):
        if section["order"] != index:
            db["templatesection"].update_one({"_id": section["_id"]}, {"$set": {"order": index}})
    touch(db, "template", template["_id"])
    return template_bundle(db, template)

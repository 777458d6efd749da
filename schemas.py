"""
Database Schemas for Evento

Each Pydantic model represents a collection in MongoDB.
Collection name is the lowercase of the class name:
- Template -> "template"
- TemplateVersion -> "templateversion"
- MicrositeSection -> "micrositesection"
Nested value objects (ColorScheme, FieldDefinition, ...) are embedded.
"""
import re
import uuid
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, EmailStr, Field, field_validator

SectionType = Literal[
    "hero", "event_details", "countdown", "gallery", "story", "timeline", "venue",
    "rsvp", "wishes", "gift_registry", "contact", "footer", "custom",
]
FieldType = Literal[
    "text", "textarea", "richtext", "number", "date", "datetime", "time", "image",
    "gallery", "video", "url", "email", "phone", "location", "select", "multiselect",
    "boolean", "color", "repeater",
]
TemplateCategory = Literal["wedding", "birthday", "corporate", "baby_shower", "anniversary", "other"]
LifecycleStatus = Literal["draft", "published", "archived"]
GuestStatus = Literal["pending", "attending", "not_attending", "maybe"]
WishStatus = Literal["pending", "approved", "rejected"]
DeviceMode = Literal["desktop", "tablet", "mobile"]


def generate_id(prefix: str) -> str:
    return f"{prefix}_{uuid.uuid4().hex[:8]}"


def slugify(text: str) -> str:
    return re.sub(r"[^a-z0-9]+", "-", text.lower()).strip("-")


def unique_slug(text: str) -> str:
    return f"{slugify(text)}-{uuid.uuid4().hex[:8]}"


# ---------- Embedded value objects ----------

class ColorScheme(BaseModel):
    id: str
    name: str
    primary: str
    secondary: str
    accent: str
    background: str = "#FFFFFF"
    surface: str = "#FAFAFA"
    text: str = "#212121"
    text_muted: str = "#757575"


class FontPair(BaseModel):
    id: str
    name: str
    heading: str
    body: str
    heading_weight: int = 700
    body_weight: int = 400


class SampleProfile(BaseModel):
    id: str
    name: str
    description: str = ""


class FieldValidation(BaseModel):
    required: Optional[bool] = None
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    min: Optional[Union[int, float]] = None
    max: Optional[Union[int, float]] = None
    pattern: Optional[str] = None

    @field_validator("pattern")
    @classmethod
    def pattern_compiles(cls, v):
        if v:
            try:
                re.compile(v)
            except re.error as exc:
                raise ValueError(f"invalid pattern: {exc}")
        return v


class FieldOption(BaseModel):
    value: str
    label: str


class FieldDefinition(BaseModel):
    field_id: str = Field(default_factory=lambda: generate_id("fld"))
    key: str = Field(..., description="Key under which the value is stored")
    type: FieldType
    label: str
    placeholder: Optional[str] = None
    help_text: Optional[str] = None
    default_value: Optional[Any] = None
    validation: Optional[FieldValidation] = None
    options: List[FieldOption] = Field(default_factory=list)
    fields: Optional[List["FieldDefinition"]] = Field(None, description="Nested fields for repeater type")

    @property
    def is_required(self) -> bool:
        return bool(self.validation and self.validation.required)


FieldDefinition.model_rebuild()


class MicrositeSettings(BaseModel):
    enable_rsvp: bool = True
    enable_wishes: bool = True
    require_wish_approval: bool = True
    max_highlighted_wishes: int = Field(5, ge=0)
    rsvp_deadline: Optional[datetime] = None
    event_date: Optional[datetime] = None
    event_end_date: Optional[datetime] = None
    timezone: str = "UTC"


class SettingsUpdate(BaseModel):
    """Partial settings change; only fields sent by the client are merged."""
    enable_rsvp: Optional[bool] = None
    enable_wishes: Optional[bool] = None
    require_wish_approval: Optional[bool] = None
    max_highlighted_wishes: Optional[int] = Field(None, ge=0)
    rsvp_deadline: Optional[datetime] = None
    event_date: Optional[datetime] = None
    event_end_date: Optional[datetime] = None
    timezone: Optional[str] = None

    def merge_into(self, current: Optional[dict]) -> dict:
        merged = {**(current or {}), **self.model_dump(exclude_unset=True)}
        return MicrositeSettings(**merged).model_dump()


class SectionContent(BaseModel):
    section_id: str
    visible: bool = True
    order: int
    content: Dict[str, Any] = Field(default_factory=dict)


# ---------- Collections ----------

class AdminUser(BaseModel):
    email: EmailStr = Field(..., description="Unique email address")
    password_hash: str = Field(..., description="bcrypt hash")
    name: str = Field(..., description="Display name")
    role: Literal["admin", "editor"] = Field("editor", description="Role: admin or editor")
    permissions: List[str] = Field(default_factory=list)


class Template(BaseModel):
    name: str = Field(..., description="Template name")
    slug: str = Field(..., description="Unique slug")
    description: str = ""
    category: TemplateCategory = "other"
    thumbnail: str = ""
    preview_images: List[str] = Field(default_factory=list)
    status: LifecycleStatus = "draft"
    is_active: bool = False
    current_version: int = Field(1, description="Version number microsites are created from")
    usage_count: int = 0
    created_by: Optional[str] = None


class TemplateVersion(BaseModel):
    template_id: Any = Field(..., description="Template ObjectId")
    version: int = Field(..., ge=1)
    color_schemes: List[ColorScheme] = Field(default_factory=list)
    font_pairs: List[FontPair] = Field(default_factory=list)
    sample_profiles: List[SampleProfile] = Field(default_factory=list)
    default_color_scheme: str = ""
    default_font_pair: str = ""
    default_sample_profile: str = "default"
    changelog: str = ""


class TemplateSection(BaseModel):
    version_id: Any = Field(..., description="TemplateVersion ObjectId")
    section_id: str = Field(default_factory=lambda: generate_id("sec"))
    type: SectionType
    name: str
    description: str = ""
    order: int = Field(..., ge=0, description="Dense zero-based rank")
    is_required: bool = False
    can_disable: bool = True
    fields: List[FieldDefinition] = Field(default_factory=list)
    sample_values: Dict[str, Any] = Field(default_factory=dict)


class Microsite(BaseModel):
    user_id: Any
    template_id: Any
    version_id: Any
    title: str
    slug: str
    status: LifecycleStatus = "draft"
    color_scheme: str = ""
    font_pair: str = ""
    settings: MicrositeSettings = Field(default_factory=MicrositeSettings)
    view_count: int = 0
    unique_view_count: int = 0
    last_viewed_at: Optional[datetime] = None
    published_at: Optional[datetime] = None
    stats: Dict[str, int] = Field(default_factory=lambda: {"highlighted_wishes": 0})


class MicrositeSection(BaseModel):
    microsite_id: Any
    section_id: str
    type: SectionType
    order: int
    enabled: bool = True
    values: Dict[str, Any] = Field(default_factory=dict)


class Site(BaseModel):
    user_id: Any
    template_id: Any
    template_version: int
    title: str
    slug: str
    description: str = ""
    status: Literal["draft", "published"] = "draft"
    sections: List[SectionContent] = Field(default_factory=list)
    selected_color_scheme: str = ""
    selected_font_pair: str = ""
    settings: MicrositeSettings = Field(default_factory=MicrositeSettings)
    stats: Dict[str, int] = Field(default_factory=lambda: {
        "views": 0, "unique_visitors": 0, "rsvp_count": 0, "wish_count": 0, "highlighted_wishes": 0,
    })
    published_at: Optional[datetime] = None


class Guest(BaseModel):
    site_id: Any
    name: str = Field(..., min_length=1)
    email: Optional[str] = Field(None, description="Lower-cased; one RSVP per email per site")
    phone: Optional[str] = None
    status: GuestStatus = "pending"
    party_size: int = Field(1, ge=1)
    guest_names: List[str] = Field(default_factory=list)
    meal_choice: Optional[str] = None
    dietary_restrictions: Optional[str] = None
    message: Optional[str] = None
    custom_fields: Dict[str, Any] = Field(default_factory=dict)
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    submitted_at: Optional[datetime] = None


class Wish(BaseModel):
    site_id: Any
    author_name: str = Field(..., min_length=1)
    author_email: Optional[str] = None
    message: str = Field(..., min_length=1)
    status: WishStatus = "pending"
    is_highlighted: bool = False
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None
    submitted_at: Optional[datetime] = None
    moderated_at: Optional[datetime] = None
    moderated_by: Optional[str] = None


class Media(BaseModel):
    filename: str
    original_name: str
    mime_type: str
    size: int
    url: str
    gridfs_id: Any
    uploaded_by: Optional[str] = None
    tags: List[str] = Field(default_factory=list)


# ---------- Field value checks ----------

def is_blank(value) -> bool:
    return value is None or value == ""


def missing_required_fields(template_sections, contents, visibility) -> List[str]:
    """
    List "<Section name>: <Field label>" for every required field left empty.

    Only sections flagged ``is_required`` and currently visible are walked.
    ``contents`` maps section_id -> values dict and ``visibility`` maps
    section_id -> bool; sections absent from ``visibility`` count as hidden.
    """
    missing = []
    for section in template_sections:
        if not section.get("is_required"):
            continue
        section_id = section["section_id"]
        if not visibility.get(section_id):
            continue
        values = contents.get(section_id) or {}
        for field in section.get("fields") or []:
            if (field.get("validation") or {}).get("required") and is_blank(values.get(field["key"])):
                missing.append(f"{section['name']}: {field['label']}")
    return missing


def validate_section_values(fields, values) -> List[str]:
    """Check provided values against their field rules. Empty values are skipped."""
    errors = []
    for field in fields or []:
        key = field["key"]
        value = values.get(key)
        if is_blank(value):
            continue
        label = field.get("label") or key
        rules = field.get("validation") or {}
        options = {o["value"] for o in field.get("options") or []}

        if isinstance(value, str):
            if rules.get("min_length") is not None and len(value) < rules["min_length"]:
                errors.append(f"{label} must be at least {rules['min_length']} characters")
            if rules.get("max_length") is not None and len(value) > rules["max_length"]:
                errors.append(f"{label} must be at most {rules['max_length']} characters")
            if rules.get("pattern") and not re.fullmatch(rules["pattern"], value):
                errors.append(f"{label} has an invalid format")
        elif isinstance(value, (int, float)) and not isinstance(value, bool):
            if rules.get("min") is not None and value < rules["min"]:
                errors.append(f"{label} must be at least {rules['min']}")
            if rules.get("max") is not None and value > rules["max"]:
                errors.append(f"{label} must be at most {rules['max']}")

        if field.get("type") == "select" and options and value not in options:
            errors.append(f"{label} must be one of: {', '.join(sorted(options))}")
        elif field.get("type") == "multiselect" and options:
            chosen = value if isinstance(value, list) else [value]
            if any(v not in options for v in chosen):
                errors.append(f"{label} must be one of: {', '.join(sorted(options))}")
        elif field.get("type") == "repeater" and field.get("fields"):
            if not isinstance(value, list):
                errors.append(f"{label} must be a list")
                continue
            for i, row in enumerate(value, start=1):
                if not isinstance(row, dict):
                    errors.append(f"{label} #{i} must be an object")
                    continue
                errors.extend(f"{label} #{i}: {e}" for e in validate_section_values(field["fields"], row))
    return errors

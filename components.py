"""
Component palette for the visual template builder.

Components are positioned absolutely on the builder canvas; string props
support ``{{variables}}`` which are filled from preview data.
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from interpolate import extract_variables, interpolate_component

router = APIRouter(prefix="/components", tags=["components"])


class Position(BaseModel):
    x: int = 0
    y: int = 0
    width: int
    height: int


class ComponentSchema(BaseModel):
    type: str
    name: str
    description: str
    category: str
    default_props: Dict[str, Any] = Field(default_factory=dict)
    default_styles: Dict[str, Any] = Field(default_factory=dict)
    default_position: Position
    props_schema: Dict[str, Any] = Field(default_factory=dict)


def _prop(type_: str, description: str, default: Any = None, enum: Optional[List[str]] = None) -> dict:
    prop = {"type": type_, "description": description}
    if default is not None:
        prop["default"] = default
    if enum:
        prop["enum"] = enum
    return prop


COMPONENT_SCHEMAS: List[ComponentSchema] = [
    ComponentSchema(
        type="text",
        name="Text Block",
        description="A text element with customizable font, size, and color",
        category="content",
        default_props={"content": "Enter text here", "fontSize": 16, "fontWeight": "normal",
                       "fontFamily": "Arial", "textAlign": "left", "color": "#000000"},
        default_styles={"padding": "8px"},
        default_position=Position(width=200, height=50),
        props_schema={
            "properties": {
                "content": _prop("string", "Text content (supports {{variables}})"),
                "fontSize": _prop("number", "Font size in pixels", 16),
                "fontWeight": _prop("string", "Font weight", "normal", ["normal", "bold", "lighter"]),
                "fontFamily": _prop("string", "Font family", "Arial"),
                "textAlign": _prop("string", "Text alignment", "left", ["left", "center", "right", "justify"]),
                "color": _prop("string", "Text color (hex)", "#000000"),
            },
            "required": ["content"],
        },
    ),
    ComponentSchema(
        type="heading",
        name="Heading",
        description="A heading element with configurable level",
        category="content",
        default_props={"content": "Heading", "level": 1, "fontFamily": "Arial",
                       "textAlign": "left", "color": "#000000"},
        default_styles={"padding": "8px"},
        default_position=Position(width=300, height=60),
        props_schema={
            "properties": {
                "content": _prop("string", "Heading text (supports {{variables}})"),
                "level": _prop("number", "Heading level (1-6)", 1),
                "fontFamily": _prop("string", "Font family", "Arial"),
                "textAlign": _prop("string", "Text alignment", "left", ["left", "center", "right"]),
                "color": _prop("string", "Text color (hex)", "#000000"),
            },
            "required": ["content"],
        },
    ),
    ComponentSchema(
        type="image",
        name="Image",
        description="An image element from the media library or a URL",
        category="media",
        default_props={"src": "", "alt": "Image", "objectFit": "cover", "borderRadius": 0},
        default_styles={"overflow": "hidden"},
        default_position=Position(width=200, height=200),
        props_schema={
            "properties": {
                "src": _prop("string", "Image URL (supports {{variables}})"),
                "alt": _prop("string", "Alternative text", "Image"),
                "objectFit": _prop("string", "How the image fills its box", "cover",
                                   ["cover", "contain", "fill", "none"]),
                "borderRadius": _prop("number", "Corner radius in pixels", 0),
            },
            "required": ["src"],
        },
    ),
    ComponentSchema(
        type="container",
        name="Container",
        description="A flex container that groups other components",
        category="layout",
        default_props={"display": "flex", "flexDirection": "column", "justifyContent": "flex-start",
                       "alignItems": "flex-start", "gap": 8, "backgroundColor": "transparent"},
        default_styles={"padding": "16px"},
        default_position=Position(width=300, height=200),
        props_schema={
            "properties": {
                "flexDirection": _prop("string", "Main axis", "column", ["row", "column"]),
                "justifyContent": _prop("string", "Main axis alignment", "flex-start",
                                        ["flex-start", "center", "flex-end", "space-between"]),
                "alignItems": _prop("string", "Cross axis alignment", "flex-start",
                                    ["flex-start", "center", "flex-end", "stretch"]),
                "gap": _prop("number", "Gap between children in pixels", 8),
                "backgroundColor": _prop("string", "Background color", "transparent"),
            },
        },
    ),
    ComponentSchema(
        type="divider",
        name="Divider",
        description="A horizontal or vertical rule",
        category="decorative",
        default_props={"orientation": "horizontal", "thickness": 1, "color": "#cccccc", "style": "solid"},
        default_position=Position(width=200, height=2),
        props_schema={
            "properties": {
                "orientation": _prop("string", "Direction", "horizontal", ["horizontal", "vertical"]),
                "thickness": _prop("number", "Line thickness in pixels", 1),
                "color": _prop("string", "Line color", "#cccccc"),
                "style": _prop("string", "Line style", "solid", ["solid", "dashed", "dotted"]),
            },
        },
    ),
    ComponentSchema(
        type="shape",
        name="Shape",
        description="A rectangle or circle",
        category="decorative",
        default_props={"shape": "rectangle", "backgroundColor": "#f0f0f0", "borderColor": "#cccccc",
                       "borderWidth": 1, "borderRadius": 0},
        default_position=Position(width=100, height=100),
        props_schema={
            "properties": {
                "shape": _prop("string", "Shape type", "rectangle", ["rectangle", "circle"]),
                "backgroundColor": _prop("string", "Fill color", "#f0f0f0"),
                "borderColor": _prop("string", "Border color", "#cccccc"),
                "borderWidth": _prop("number", "Border width in pixels", 1),
                "borderRadius": _prop("number", "Corner radius in pixels", 0),
            },
        },
    ),
    ComponentSchema(
        type="qrcode",
        name="QR Code",
        description="A QR code encoding a URL or text",
        category="custom",
        default_props={"value": "https://example.com", "size": 128, "fgColor": "#000000", "bgColor": "#ffffff"},
        default_position=Position(width=150, height=150),
        props_schema={
            "properties": {
                "value": _prop("string", "QR code content (supports {{variables}})"),
                "size": _prop("number", "QR code size in pixels", 128),
                "fgColor": _prop("string", "Foreground color", "#000000"),
                "bgColor": _prop("string", "Background color", "#ffffff"),
            },
            "required": ["value"],
        },
    ),
    ComponentSchema(
        type="datetime",
        name="Date/Time Display",
        description="A date and time display component",
        category="custom",
        default_props={"value": "", "format": "MMMM DD, YYYY", "fontSize": 16,
                       "fontFamily": "Arial", "color": "#000000"},
        default_styles={"padding": "8px"},
        default_position=Position(width=200, height=40),
        props_schema={
            "properties": {
                "value": _prop("string", "Date value (supports {{variables}})"),
                "format": _prop("string", "Date format string", "MMMM DD, YYYY"),
                "fontSize": _prop("number", "Font size in pixels", 16),
                "fontFamily": _prop("string", "Font family", "Arial"),
                "color": _prop("string", "Text color", "#000000"),
            },
            "required": ["value"],
        },
    ),
]


def get_component_schema(component_type: str) -> Optional[ComponentSchema]:
    for schema in COMPONENT_SCHEMAS:
        if schema.type == component_type:
            return schema
    return None


def get_components_by_category(category: str) -> List[ComponentSchema]:
    return [s for s in COMPONENT_SCHEMAS if s.category == category]


class InterpolateRequest(BaseModel):
    components: List[Dict[str, Any]] = Field(default_factory=list)
    data: Dict[str, Any] = Field(default_factory=dict)


@router.get("")
def list_components(category: Optional[str] = None):
    components = get_components_by_category(category) if category else COMPONENT_SCHEMAS
    return {"components": [c.model_dump() for c in components]}


@router.get("/categories")
def list_categories():
    categories = []
    for schema in COMPONENT_SCHEMAS:
        if schema.category not in categories:
            categories.append(schema.category)
    return {"categories": categories}


@router.get("/{component_type}")
def get_component(component_type: str):
    schema = get_component_schema(component_type)
    if schema is None:
        raise HTTPException(404, "Component not found")
    return schema.model_dump()


@router.post("/interpolate")
def interpolate_components(payload: InterpolateRequest):
    """Fill builder components with preview data and report the variables they use."""
    variables = []
    for component in payload.components:
        for value in (component.get("props") or {}).values():
            if isinstance(value, str):
                for name in extract_variables(value):
                    if name not in variables:
                        variables.append(name)
    return {
        "components": [interpolate_component(c, payload.data) for c in payload.components],
        "variables": variables,
    }

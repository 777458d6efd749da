"""
Demo data: an admin account (from ADMIN_EMAIL / ADMIN_PASSWORD) and two
published templates, a wedding and a birthday party.

Run with ``python seed.py``. Existing templates with the same name are left alone.
"""
import logging

from auth import ADMIN_PERMISSIONS, hash_password
from config import ADMIN_EMAIL, ADMIN_PASSWORD, DATABASE_NAME, MONGODB_URI
from database import connect, create_document, ensure_indexes
from schemas import AdminUser, Template, unique_slug
from templates_api import SectionPayload, build_section_docs, create_template_with_version, version_data_from

logger = logging.getLogger(__name__)

UNSPLASH = "https://images.unsplash.com/photo-"


def _field(key, type_, label, required=False):
    field = {"key": key, "type": type_, "label": label}
    if required:
        field["validation"] = {"required": True}
    return field


def _section(type_, name, fields, sample_values, required=False):
    return {
        "type": type_,
        "name": name,
        "is_required": required,
        "can_disable": not required,
        "fields": fields,
        "sample_values": sample_values,
    }


WEDDING_TEMPLATE = {
    "name": "Elegant Wedding Invitation",
    "description": "A stunning wedding invitation template with multiple style options - choose from "
                   "Classic Romance, Modern Minimalist, or Rustic Charm themes.",
    "category": "wedding",
    "thumbnail": UNSPLASH + "1519741497674-611481863552?w=800",
    "color_schemes": [
        {"id": "classic", "name": "Classic Romance", "primary": "#8B4557", "secondary": "#D4A5A5",
         "accent": "#F5E6E8", "background": "#FDF8F8", "surface": "#FFFFFF", "text": "#2D2D2D",
         "text_muted": "#666666"},
        {"id": "modern", "name": "Modern Minimalist", "primary": "#1A1A1A", "secondary": "#666666",
         "accent": "#E8E8E8", "background": "#FFFFFF", "surface": "#F5F5F5", "text": "#1A1A1A",
         "text_muted": "#757575"},
        {"id": "rustic", "name": "Rustic Charm", "primary": "#6B4423", "secondary": "#A67C52",
         "accent": "#D4C4B0", "background": "#F5F0EB", "surface": "#FFFFFF", "text": "#3D3D3D",
         "text_muted": "#666666"},
    ],
    "font_pairs": [
        {"id": "elegant", "name": "Elegant Serif", "heading": "Playfair Display", "body": "Lato"},
        {"id": "modern", "name": "Modern Sans", "heading": "Montserrat", "body": "Open Sans"},
    ],
    "sample_profiles": [
        {"id": "classic", "name": "Classic Romance",
         "description": "Traditional elegant wedding with roses and soft colors"},
        {"id": "modern", "name": "Modern Minimalist",
         "description": "Clean, contemporary wedding with geometric accents"},
        {"id": "rustic", "name": "Rustic Charm", "description": "Outdoor garden wedding with natural elements"},
    ],
    "default_color_scheme": "classic",
    "default_font_pair": "elegant",
    "default_sample_profile": "classic",
    "sections": [
        _section("hero", "Wedding Hero", [
            _field("groomName", "text", "Groom Name", required=True),
            _field("brideName", "text", "Bride Name", required=True),
            _field("tagline", "text", "Tagline"),
            _field("weddingDate", "date", "Wedding Date", required=True),
            _field("heroImage", "image", "Hero Image"),
        ], {
            "groomName": "James", "brideName": "Elizabeth", "tagline": "Two Hearts, One Love",
            "weddingDate": "2026-06-15", "heroImage": UNSPLASH + "1583939003579-730e3918a45a?w=1920&q=90",
        }, required=True),
        _section("countdown", "Wedding Countdown", [
            _field("targetDate", "datetime", "Wedding Date & Time", required=True),
            _field("message", "text", "Countdown Message"),
        ], {"targetDate": "2026-06-15T16:00:00", "message": "Until We Say I Do"}),
        _section("story", "Our Story", [
            _field("title", "text", "Section Title"),
            _field("story", "textarea", "Your Story"),
            _field("storyImage", "image", "Story Image"),
        ], {
            "title": "Our Love Story",
            "story": "We met at a coffee shop on a rainy afternoon. What started as a chance encounter "
                     "became the greatest adventure of our lives.",
            "storyImage": UNSPLASH + "1522673607200-164d1b6ce486?w=800",
        }),
        _section("event_details", "Wedding Details", [
            _field("ceremonyTime", "text", "Ceremony Time", required=True),
            _field("receptionTime", "text", "Reception Time"),
            _field("dressCode", "text", "Dress Code"),
            _field("additionalInfo", "textarea", "Additional Information"),
        ], {
            "ceremonyTime": "4:00 PM", "receptionTime": "6:00 PM - 11:00 PM",
            "dressCode": "Black Tie Optional", "additionalInfo": "Dinner and dancing to follow the ceremony",
        }, required=True),
        _section("venue", "Wedding Venue", [
            _field("venueName", "text", "Venue Name", required=True),
            _field("address", "textarea", "Address", required=True),
            _field("venueImage", "image", "Venue Image"),
            _field("mapUrl", "url", "Map URL"),
            _field("directions", "textarea", "Directions"),
        ], {
            "venueName": "The Grand Ballroom", "address": "123 Elegant Avenue, Beverly Hills, CA 90210",
            "venueImage": UNSPLASH + "1519167758481-83f550bb49b3?w=1200",
            "directions": "Located in the heart of Beverly Hills",
        }, required=True),
        _section("gallery", "Photo Gallery", [
            _field("title", "text", "Gallery Title"),
            _field("images", "gallery", "Gallery Images"),
        ], {
            "title": "Our Moments",
            "images": [
                UNSPLASH + "1519741497674-611481863552?w=800",
                UNSPLASH + "1522673607200-164d1b6ce486?w=800",
                UNSPLASH + "1511285560929-80b456fea0bc?w=800",
                UNSPLASH + "1465495976277-4387d4b0b4c6?w=800",
            ],
        }),
        _section("rsvp", "RSVP", [
            _field("title", "text", "RSVP Title"),
            _field("message", "textarea", "RSVP Message"),
            _field("deadline", "date", "RSVP Deadline"),
        ], {
            "title": "RSVP", "message": "Please let us know if you can join us on our special day.",
            "deadline": "2026-05-15",
        }, required=True),
        _section("wishes", "Wedding Wishes", [
            _field("title", "text", "Wishes Title"),
            _field("description", "textarea", "Description"),
        ], {"title": "Send Your Wishes", "description": "Leave a message for the happy couple!"}),
    ],
}

BIRTHDAY_TEMPLATE = {
    "name": "Fun Birthday Bash",
    "description": "A vibrant birthday party template with themes for Kids Party, Teen Celebration, "
                   "and Adult Milestone birthdays.",
    "category": "birthday",
    "thumbnail": UNSPLASH + "1464349153735-7db50ed83c84?w=800",
    "color_schemes": [
        {"id": "kids", "name": "Kids Party", "primary": "#FF6B6B", "secondary": "#4ECDC4",
         "accent": "#FFE66D", "background": "#FFF9F0", "surface": "#FFFFFF", "text": "#2D3436",
         "text_muted": "#636E72"},
        {"id": "teen", "name": "Teen Vibes", "primary": "#6C5CE7", "secondary": "#A29BFE",
         "accent": "#FD79A8", "background": "#F8F9FA", "surface": "#FFFFFF", "text": "#2D3436",
         "text_muted": "#636E72"},
        {"id": "milestone", "name": "Golden Milestone", "primary": "#D4AF37", "secondary": "#1A1A2E",
         "accent": "#F5E6CC", "background": "#FFFEF7", "surface": "#FFFFFF", "text": "#1A1A2E",
         "text_muted": "#4A4A4A"},
    ],
    "font_pairs": [
        {"id": "playful", "name": "Playful", "heading": "Fredoka One", "body": "Nunito"},
        {"id": "elegant", "name": "Elegant", "heading": "Cormorant Garamond", "body": "Raleway"},
    ],
    "sample_profiles": [
        {"id": "kids", "name": "Kids Party", "description": "Colorful and fun party for children"},
        {"id": "teen", "name": "Teen Celebration", "description": "Cool and trendy party for teenagers"},
        {"id": "milestone", "name": "Golden Milestone", "description": "Elegant celebration for milestone birthdays"},
    ],
    "default_color_scheme": "kids",
    "default_font_pair": "playful",
    "default_sample_profile": "kids",
    "sections": [
        _section("hero", "Birthday Hero", [
            _field("name", "text", "Birthday Person Name", required=True),
            _field("age", "number", "Turning Age", required=True),
            _field("tagline", "text", "Party Tagline"),
            _field("partyDate", "date", "Party Date", required=True),
            _field("heroImage", "image", "Hero Image"),
        ], {
            "name": "Lily", "age": 6, "tagline": "Let the Magic Begin!", "partyDate": "2026-04-12",
            "heroImage": UNSPLASH + "1464349153735-7db50ed83c84?w=1920&q=90",
        }, required=True),
        _section("countdown", "Party Countdown", [
            _field("targetDate", "datetime", "Party Date & Time", required=True),
            _field("message", "text", "Countdown Message"),
        ], {"targetDate": "2026-04-12T14:00:00", "message": "The party starts in..."}),
        _section("event_details", "Party Details", [
            _field("partyTime", "text", "Party Time", required=True),
            _field("theme", "text", "Party Theme"),
            _field("dressCode", "text", "Dress Code"),
            _field("activities", "textarea", "Activities"),
        ], {
            "partyTime": "2:00 PM - 5:00 PM", "theme": "Unicorn Rainbow",
            "dressCode": "Wear your favorite colors!", "activities": "Games, face painting, and cake!",
        }, required=True),
        _section("venue", "Party Location", [
            _field("venueName", "text", "Venue Name", required=True),
            _field("address", "textarea", "Address", required=True),
            _field("venueImage", "image", "Venue Image"),
            _field("directions", "textarea", "Directions"),
        ], {
            "venueName": "Fun Zone Party Center", "address": "456 Party Lane, Los Angeles, CA 90028",
            "venueImage": UNSPLASH + "1464349153735-7db50ed83c84?w=1200",
            "directions": "Located next to the mall.",
        }, required=True),
        _section("gallery", "Party Gallery", [
            _field("title", "text", "Gallery Title"),
            _field("images", "gallery", "Gallery Images"),
        ], {
            "title": "Party Memories",
            "images": [
                UNSPLASH + "1530103862676-de8c9debad1d?w=800",
                UNSPLASH + "1558636508-e0db3814bd1d?w=800",
                UNSPLASH + "1513151233558-d860c5398176?w=800",
            ],
        }),
        _section("rsvp", "Party RSVP", [
            _field("title", "text", "RSVP Title"),
            _field("message", "textarea", "RSVP Message"),
            _field("deadline", "date", "RSVP Deadline"),
        ], {
            "title": "Join the Party!", "message": "We would love to have you celebrate with us!",
            "deadline": "2026-04-05",
        }, required=True),
        _section("wishes", "Birthday Wishes", [
            _field("title", "text", "Wishes Title"),
            _field("description", "textarea", "Description"),
        ], {"title": "Send Birthday Wishes", "description": "Leave a special birthday message!"}),
        _section("gift_registry", "Gift Ideas", [
            _field("title", "text", "Title"),
            _field("message", "textarea", "Message"),
        ], {"title": "Gift Ideas", "message": "Your presence is the best gift!"}),
    ],
}

DEMO_TEMPLATES = [WEDDING_TEMPLATE, BIRTHDAY_TEMPLATE]


def seed_admin(db):
    if not (ADMIN_EMAIL and ADMIN_PASSWORD):
        return None
    email = ADMIN_EMAIL.lower()
    existing = db["adminuser"].find_one({"email": email})
    if existing:
        return existing
    user = AdminUser(
        email=email,
        password_hash=hash_password(ADMIN_PASSWORD),
        name="Admin",
        role="admin",
        permissions=ADMIN_PERMISSIONS,
    )
    create_document(db, "adminuser", user)
    logger.info("Seeded admin user %s", email)
    return db["adminuser"].find_one({"email": email})


def seed_template(db, demo: dict, created_by=None):
    if db["template"].find_one({"name": demo["name"]}):
        logger.info("Template %s already exists, skipping", demo["name"])
        return None
    template = Template(
        name=demo["name"],
        slug=unique_slug(demo["name"]),
        description=demo["description"],
        category=demo["category"],
        thumbnail=demo["thumbnail"],
        status="published",
        is_active=True,
        created_by=created_by,
    )
    section_docs = build_section_docs([SectionPayload(**s) for s in demo["sections"]])
    doc = create_template_with_version(db, template, version_data_from({**demo, "changelog": "Initial version"}),
                                       section_docs)
    logger.info("Seeded template %s (%s)", doc["name"], doc["_id"])
    return doc


def seed_templates(db, created_by=None):
    return [doc for doc in (seed_template(db, demo, created_by) for demo in DEMO_TEMPLATES) if doc]


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    if not MONGODB_URI:
        raise SystemExit("MONGODB_URI is not set")
    client, db = connect(MONGODB_URI, DATABASE_NAME)
    try:
        ensure_indexes(db)
        admin = seed_admin(db)
        seed_templates(db, str(admin["_id"]) if admin else None)
    finally:
        client.close()

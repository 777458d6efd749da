"""
Server-side rendering of event sections.

One renderer per section type lives in ``SECTION_RENDERERS``; each pulls its
values out of the section's field values (through ``FIELD_SYNONYMS``) and
hands a context to a Jinja2 template. Types without a renderer fall back to a
generic label/value list built from the section's field definitions.
All markup goes through Jinja2 with autoescaping on, so user content is
HTML-escaped.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple
from urllib.parse import urlsplit

import jinja2

logger = logging.getLogger(__name__)

DEFAULT_COLOR_SCHEME = {
    "primary": "#8B4557",
    "secondary": "#D4A5A5",
    "accent": "#F5E6E8",
    "background": "#FFFFFF",
    "surface": "#FAFAFA",
    "text": "#212121",
    "text_muted": "#757575",
}
DEFAULT_FONT_PAIR = {"heading": "Playfair Display", "body": "Lato", "heading_weight": 700, "body_weight": 400}
LINK_SCHEMES = {"http", "https", "mailto"}

# Value keys accepted for each slot, first non-empty wins. Templates authored
# at different times name the same thing differently.
FIELD_SYNONYMS: Dict[str, Dict[str, Tuple[str, ...]]] = {
    "hero": {
        "celebrant_name": ("celebrantName", "name", "birthdayPersonName"),
        "age": ("age", "turningAge"),
        "groom_name": ("groomName",),
        "bride_name": ("brideName",),
        "tagline": ("tagline",),
        "background_image": ("backgroundImage", "heroImage"),
        "wedding_date": ("weddingDate",),
        "birthday_date": ("birthdayDate", "partyDate"),
    },
    "event_details": {
        "party_time": ("partyTime",),
        "party_venue": ("partyVenue",),
        "theme": ("theme", "partyTheme"),
        "ceremony_time": ("ceremonyTime",),
        "ceremony_venue": ("ceremonyVenue",),
        "reception_time": ("receptionTime",),
        "reception_venue": ("receptionVenue",),
        "dress_code": ("dressCode",),
    },
    "countdown": {
        "target_date": ("targetDate", "eventDate", "weddingDate", "partyDate"),
        "message": ("message",),
    },
    "gallery": {
        "title": ("title",),
        "images": ("images", "photos"),
    },
    "story": {
        "title": ("title",),
        "story": ("story", "content"),
        "image": ("coupleImage", "storyImage"),
    },
    "venue": {
        "venue_name": ("venueName", "name"),
        "address": ("address", "venueAddress"),
        "venue_image": ("venueImage",),
        "map_url": ("mapUrl",),
        "directions": ("directions",),
    },
    "rsvp": {
        "title": ("title",),
        "message": ("message",),
        "deadline": ("deadline", "rsvpDeadline"),
    },
    "wishes": {
        "title": ("title",),
        "description": ("description",),
    },
    "gift_registry": {
        "title": ("title",),
        "message": ("message", "description"),
        "registries": ("registries", "links"),
    },
    "contact": {
        "title": ("title",),
        "name": ("contact_name", "contactName"),
        "phone": ("contact_phone", "contactPhone"),
        "email": ("contact_email", "contactEmail"),
    },
    "footer": {
        "message": ("message",),
        "hashtag": ("hashtag",),
    },
}

_TEMPLATES = {
    "section.html": """\
<section class="evento-section evento-{{ type }}{% if mobile %} is-mobile{% endif %}" style="{% block style %}padding: {{ '24px' if mobile else '48px' }};{% endblock %}">
{% block body %}{% endblock %}
</section>""",
    "hero.html": """\
{% extends "section.html" %}
{% block style %}min-height: {{ '400px' if mobile else '500px' }}; text-align: center; background-size: cover; background-position: center; {% if background_image %}background-image: linear-gradient(rgba(0,0,0,0.3), rgba(0,0,0,0.3)), url('{{ background_image }}');{% else %}background-image: linear-gradient(135deg, {{ scheme.primary }}, {{ scheme.secondary }});{% endif %}{% endblock %}
{% block body %}
  {% if is_birthday %}
  <p class="eyebrow">{{ celebrant_name }} is turning</p>
  <h1 class="hero-title">{{ age }}</h1>
  {% else %}
  <p class="eyebrow">The Wedding of</p>
  <h1 class="hero-title">{{ groom_name or 'Groom' }} &amp; {{ bride_name or 'Bride' }}</h1>
  {% endif %}
  <p class="tagline">{{ tagline }}</p>
  {% if event_date %}<p class="event-date">{{ event_date }}</p>{% endif %}
{% endblock %}""",
    "event_details.html": """\
{% extends "section.html" %}
{% block body %}
  <h2 style="color: {{ scheme.primary }}">{{ 'Party Details' if is_birthday else 'Wedding Schedule' }}</h2>
  {% if is_birthday %}
  <dl>
    {% if party_time %}<dt>Time</dt><dd>{{ party_time }}</dd>{% endif %}
    {% if party_venue %}<dt>Venue</dt><dd>{{ party_venue }}</dd>{% endif %}
    {% if theme %}<dt>Theme</dt><dd>{{ theme }}</dd>{% endif %}
  </dl>
  {% else %}
  <dl>
    <dt>Ceremony</dt><dd>{{ ceremony_time }} &middot; {{ ceremony_venue }}</dd>
    <dt>Reception</dt><dd>{{ reception_time }} &middot; {{ reception_venue }}</dd>
  </dl>
  {% endif %}
  {% if dress_code %}<p class="dress-code">Dress Code: {{ dress_code }}</p>{% endif %}
{% endblock %}""",
    "countdown.html": """\
{% extends "section.html" %}
{% block style %}padding: {{ '16px' if mobile else '48px' }}; text-align: center; background: linear-gradient(135deg, {{ scheme.primary }}15, {{ scheme.secondary }}15);{% endblock %}
{% block body %}
  <p class="countdown-message">{{ message }}</p>
  <div class="countdown">
    {% for label, value in units %}
    <div class="countdown-unit">
      <div class="countdown-value" style="background: linear-gradient(135deg, {{ scheme.primary }}, {{ scheme.secondary }})">{{ "%02d"|format(value) }}</div>
      <p style="color: {{ scheme.primary }}">{{ label }}</p>
    </div>
    {% endfor %}
  </div>
{% endblock %}""",
    "gallery.html": """\
{% extends "section.html" %}
{% block body %}
  <h2 style="color: {{ scheme.primary }}">{{ title }}</h2>
  {% if images %}
  <div class="gallery-grid" style="grid-template-columns: repeat({{ 2 if mobile else 3 }}, 1fr)">
    {% for src in images %}<img src="{{ src }}" alt="Gallery image {{ loop.index }}" loading="lazy">{% endfor %}
  </div>
  {% else %}
  <p class="empty">No photos yet.</p>
  {% endif %}
{% endblock %}""",
    "story.html": """\
{% extends "section.html" %}
{% block body %}
  <h2 style="color: {{ scheme.primary }}">{{ title }}</h2>
  {% if image %}<img class="story-image" src="{{ image }}" alt="{{ title }}">{% endif %}
  <p class="story">{{ story }}</p>
{% endblock %}""",
    "venue.html": """\
{% extends "section.html" %}
{% block body %}
  <h2 style="color: {{ scheme.primary }}">{{ venue_name }}</h2>
  {% if venue_image %}<img class="venue-image" src="{{ venue_image }}" alt="{{ venue_name }}">{% endif %}
  <p class="address">{{ address }}</p>
  {% if directions %}<p class="directions">{{ directions }}</p>{% endif %}
  {% if map_url %}<a class="map-link" href="{{ map_url }}" style="color: {{ scheme.primary }}">View on map</a>{% endif %}
{% endblock %}""",
    "rsvp.html": """\
{% extends "section.html" %}
{% block body %}
  <h2 style="color: {{ scheme.primary }}">{{ title }}</h2>
  <p>{{ message }}</p>
  <form class="rsvp-form">
    <input name="name" placeholder="Your name" required>
    <input name="email" type="email" placeholder="Email">
    <select name="status">
      <option value="attending">Joyfully accepts</option>
      <option value="not_attending">Regretfully declines</option>
      <option value="maybe">Maybe</option>
    </select>
    <button type="submit" style="background: {{ scheme.primary }}">Send RSVP</button>
  </form>
  {% if deadline %}<p class="deadline">Please respond by {{ deadline }}</p>{% endif %}
{% endblock %}""",
    "wishes.html": """\
{% extends "section.html" %}
{% block body %}
  <h2 style="color: {{ scheme.primary }}">{{ title }}</h2>
  <p>{{ description }}</p>
  <form class="wish-form">
    <input name="name" placeholder="Your name" required>
    <textarea name="message" placeholder="Write your heartfelt wishes..." required></textarea>
    <button type="submit" style="background: {{ scheme.primary }}">Send Wishes</button>
  </form>
  {% for wish in wishes %}
  <blockquote class="wish{% if wish.is_highlighted %} is-highlighted{% endif %}">
    <p>{{ wish.message }}</p>
    <cite>{{ wish.author_name }}</cite>
  </blockquote>
  {% endfor %}
{% endblock %}""",
    "gift_registry.html": """\
{% extends "section.html" %}
{% block body %}
  <h2 style="color: {{ scheme.primary }}">{{ title }}</h2>
  <p>{{ message }}</p>
  {% if registries %}
  <ul class="registries">
    {% for item in registries %}<li>{% if item.url %}<a href="{{ item.url }}">{{ item.name or item.url }}</a>{% else %}{{ item.name }}{% endif %}</li>{% endfor %}
  </ul>
  {% endif %}
{% endblock %}""",
    "contact.html": """\
{% extends "section.html" %}
{% block body %}
  <h2 style="color: {{ scheme.primary }}">{{ title }}</h2>
  {% if name %}<p class="contact-name">{{ name }}</p>{% endif %}
  {% if phone %}<p class="contact-phone">{{ phone }}</p>{% endif %}
  {% if email %}<p class="contact-email"><a href="mailto:{{ email }}">{{ email }}</a></p>{% endif %}
{% endblock %}""",
    "footer.html": """\
{% extends "section.html" %}
{% block style %}padding: {{ '24px' if mobile else '48px' }}; text-align: center; color: white; background: linear-gradient(135deg, {{ scheme.primary }}, {{ scheme.secondary }});{% endblock %}
{% block body %}
  <p class="footer-message">{{ message }}</p>
  {% if hashtag %}<p class="hashtag">{{ hashtag }}</p>{% endif %}
  <p class="credit">Made with love using Evento</p>
{% endblock %}""",
    "generic.html": """\
{% extends "section.html" %}
{% block body %}
  <h2 style="color: {{ scheme.primary }}">{{ heading }}</h2>
  <dl>
    {% for label, value in rows %}<dt>{{ label }}:</dt><dd>{{ value }}</dd>{% endfor %}
  </dl>
{% endblock %}""",
    "page.html": """\
<!DOCTYPE html>
<html lang="en">
<head>
<meta charset="utf-8">
<meta name="viewport" content="width=device-width, initial-scale=1">
<title>{{ title }}</title>
<style>
body { margin: 0; background: {{ scheme.background }}; color: {{ scheme.text }}; font-family: '{{ font.body }}', sans-serif; font-weight: {{ font.body_weight }}; }
h1, h2 { font-family: '{{ font.heading }}', serif; font-weight: {{ font.heading_weight }}; }
</style>
</head>
<body class="device-{{ device_mode }}">
{% for html in sections %}{{ html|safe }}
{% endfor %}</body>
</html>""",
}

env = jinja2.Environment(loader=jinja2.DictLoader(_TEMPLATES), autoescape=True)


# ---------- Value helpers ----------

def pick(values: Dict[str, Any], section_type: str, slot: str, default: Any = "") -> Any:
    for key in FIELD_SYNONYMS.get(section_type, {}).get(slot, (slot,)):
        value = values.get(key)
        if value:
            return value
    return default


def parse_datetime(value) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None


def format_date(value) -> str:
    parsed = parse_datetime(value)
    if parsed is None:
        return str(value) if value else ""
    return f"{parsed:%A}, {parsed:%B} {parsed.day}, {parsed.year}"


def countdown_units(target, now: datetime) -> List[Tuple[str, int]]:
    days = hours = minutes = seconds = 0
    target_dt = parse_datetime(target)
    if target_dt is not None:
        if target_dt.tzinfo is None:
            target_dt = target_dt.replace(tzinfo=timezone.utc)
        remaining = int((target_dt - now).total_seconds())
        if remaining > 0:
            days, rest = divmod(remaining, 86400)
            hours, rest = divmod(rest, 3600)
            minutes, seconds = divmod(rest, 60)
    return [("Days", days), ("Hrs", hours), ("Min", minutes), ("Sec", seconds)]


def _image_urls(items) -> List[str]:
    if not isinstance(items, list):
        return []
    urls = []
    for item in items:
        if isinstance(item, dict):
            item = item.get("url")
        if item:
            urls.append(str(item))
    return urls


def safe_url(value) -> str:
    """Return ``value`` if it is an http(s) or mailto link, else an empty string."""
    if not value:
        return ""
    url = str(value).strip()
    try:
        scheme = urlsplit(url).scheme.lower()
    except ValueError:
        return ""
    return url if scheme in LINK_SCHEMES else ""


# ---------- Per-type renderers ----------
# Each takes (values, extra) and returns (template name, context).

def _hero(values, extra):
    ctx = {slot: pick(values, "hero", slot) for slot in FIELD_SYNONYMS["hero"]}
    ctx["tagline"] = ctx["tagline"] or "Together Forever"
    ctx["is_birthday"] = bool(ctx["celebrant_name"] or ctx["age"])
    ctx["event_date"] = format_date(ctx["birthday_date"] or ctx["wedding_date"])
    return "hero.html", ctx


def _event_details(values, extra):
    ctx = {slot: pick(values, "event_details", slot) for slot in FIELD_SYNONYMS["event_details"]}
    ctx["is_birthday"] = bool(ctx["party_time"] or ctx["party_venue"] or ctx["theme"])
    ctx["ceremony_time"] = ctx["ceremony_time"] or "14:00"
    ctx["ceremony_venue"] = ctx["ceremony_venue"] or "The Chapel"
    ctx["reception_time"] = ctx["reception_time"] or "17:00"
    ctx["reception_venue"] = ctx["reception_venue"] or "The Ballroom"
    ctx["dress_code"] = ctx["dress_code"] or "Formal Attire"
    return "event_details.html", ctx


def _countdown(values, extra):
    return "countdown.html", {
        "message": pick(values, "countdown", "message", "Counting down to our forever..."),
        "units": countdown_units(pick(values, "countdown", "target_date"), extra["now"]),
    }


def _gallery(values, extra):
    return "gallery.html", {
        "title": pick(values, "gallery", "title", "Our Moments Together"),
        "images": _image_urls(pick(values, "gallery", "images", [])),
    }


def _story(values, extra):
    return "story.html", {
        "title": pick(values, "story", "title", "Our Love Story"),
        "story": pick(values, "story", "story", "Share your beautiful story here."),
        "image": pick(values, "story", "image"),
    }


def _venue(values, extra):
    return "venue.html", {
        "venue_name": pick(values, "venue", "venue_name", "Beautiful Venue"),
        "address": pick(values, "venue", "address", "123 Event Street, City, Country"),
        "venue_image": pick(values, "venue", "venue_image"),
        "map_url": safe_url(pick(values, "venue", "map_url")),
        "directions": pick(values, "venue", "directions"),
    }


def _rsvp(values, extra):
    return "rsvp.html", {
        "title": pick(values, "rsvp", "title", "Join Our Celebration"),
        "message": pick(values, "rsvp", "message",
                        "We would be honored to have you celebrate this special day with us."),
        "deadline": format_date(pick(values, "rsvp", "deadline")),
    }


def _wishes(values, extra):
    return "wishes.html", {
        "title": pick(values, "wishes", "title", "Send Your Wishes"),
        "description": pick(values, "wishes", "description", "Share your love and blessings"),
        "wishes": extra.get("wishes") or [],
    }


def _gift_registry(values, extra):
    registries = pick(values, "gift_registry", "registries", [])
    return "gift_registry.html", {
        "title": pick(values, "gift_registry", "title", "Gift Registry"),
        "message": pick(values, "gift_registry", "message",
                        "Your presence is the greatest gift. If you wish to give, "
                        "please find our registry links here."),
        "registries": [
            {"name": r.get("name") or "", "url": safe_url(r.get("url"))}
            for r in registries if isinstance(r, dict)
        ] if isinstance(registries, list) else [],
    }


def _contact(values, extra):
    return "contact.html", {
        "title": pick(values, "contact", "title", "Contact Us"),
        "name": pick(values, "contact", "name"),
        "phone": pick(values, "contact", "phone"),
        "email": pick(values, "contact", "email"),
    }


def _footer(values, extra):
    return "footer.html", {
        "message": pick(values, "footer", "message", "Thank you for being part of our love story"),
        "hashtag": pick(values, "footer", "hashtag"),
    }


def _generic(values, extra):
    rows = []
    for field in extra.get("fields") or []:
        label = field.get("label") or field.get("key")
        value = values.get(field.get("key"))
        rows.append((label, value if value not in (None, "") else f"[{label}]"))
    return "generic.html", {"heading": extra.get("name") or extra["type"], "rows": rows}


SECTION_RENDERERS: Dict[str, Callable] = {
    "hero": _hero,
    "event_details": _event_details,
    "countdown": _countdown,
    "gallery": _gallery,
    "story": _story,
    "venue": _venue,
    "rsvp": _rsvp,
    "wishes": _wishes,
    "gift_registry": _gift_registry,
    "contact": _contact,
    "footer": _footer,
}


def render_section(
    section_type: str,
    values: Optional[Dict[str, Any]],
    color_scheme: Optional[Dict[str, Any]] = None,
    device_mode: str = "desktop",
    fields: Optional[List[dict]] = None,
    name: Optional[str] = None,
    wishes: Optional[List[dict]] = None,
    now: Optional[datetime] = None,
) -> str:
    scheme = {**DEFAULT_COLOR_SCHEME, **(color_scheme or {})}
    extra = {
        "type": section_type,
        "fields": fields,
        "name": name,
        "wishes": wishes,
        "now": now or datetime.now(timezone.utc),
    }
    handler = SECTION_RENDERERS.get(section_type, _generic)
    template_name, ctx = handler(values or {}, extra)
    return env.get_template(template_name).render(
        type=section_type, scheme=scheme, mobile=device_mode == "mobile", **ctx
    )


def find_by_id(items: List[dict], item_id: str) -> Optional[dict]:
    for item in items or []:
        if item.get("id") == item_id:
            return item
    return None


def render_page(
    title: str,
    sections: List[dict],
    template_sections: List[dict],
    color_scheme: Optional[dict] = None,
    font_pair: Optional[dict] = None,
    device_mode: str = "desktop",
    wishes: Optional[List[dict]] = None,
    now: Optional[datetime] = None,
) -> str:
    """Render enabled sections in rank order into a standalone HTML document."""
    definitions = {s["section_id"]: s for s in template_sections}
    rendered = []
    for section in sorted(sections, key=lambda s: s.get("order", 0)):
        if not section.get("enabled", True):
            continue
        definition = definitions.get(section["section_id"], {})
        rendered.append(render_section(
            section["type"],
            section.get("values"),
            color_scheme,
            device_mode,
            fields=definition.get("fields"),
            name=definition.get("name"),
            wishes=wishes,
            now=now,
        ))
    logger.debug("Rendered %d sections for %s", len(rendered), title)
    return env.get_template("page.html").render(
        title=title,
        scheme={**DEFAULT_COLOR_SCHEME, **(color_scheme or {})},
        font={**DEFAULT_FONT_PAIR, **(font_pair or {})},
        device_mode=device_mode,
        sections=rendered,
    )

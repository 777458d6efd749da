"""
Lookups shared by the guest and wish routes.

Guests and wishes hang off either a legacy Site or a Microsite; both live in
their own collection and ``site_id`` on a guest or wish points at whichever
one owns it.
"""
from typing import Tuple

from fastapi import HTTPException, Request

from database import as_utc, now_utc, parse_object_id

SITE_COLLECTIONS = ("site", "microsite")


def find_owned_site(db, site_id: str, user: dict) -> Tuple[str, dict]:
    """Return ``(collection, doc)`` for a site or microsite owned by ``user``; 404 otherwise."""
    _id = parse_object_id(site_id)
    for collection in SITE_COLLECTIONS:
        site = db[collection].find_one({"_id": _id, "user_id": user["_id"]})
        if site:
            return collection, site
    raise HTTPException(404, "Site not found")


def find_published_site(db, site_id: str) -> Tuple[str, dict]:
    _id = parse_object_id(site_id)
    for collection in SITE_COLLECTIONS:
        site = db[collection].find_one({"_id": _id, "status": "published"})
        if site:
            return collection, site
    raise HTTPException(404, "Site not found")


def ensure_rsvp_open(site: dict) -> None:
    settings = site.get("settings") or {}
    if not settings.get("enable_rsvp", True):
        raise HTTPException(400, "RSVP is not enabled for this site")
    deadline = as_utc(settings.get("rsvp_deadline"))
    if deadline and now_utc() > deadline:
        raise HTTPException(400, "RSVP deadline has passed")


def ensure_wishes_open(site: dict) -> None:
    if not (site.get("settings") or {}).get("enable_wishes", True):
        raise HTTPException(400, "Wishes are not enabled for this site")


def client_info(request: Request) -> dict:
    return {
        "ip_address": request.client.host if request.client else None,
        "user_agent": request.headers.get("user-agent"),
    }

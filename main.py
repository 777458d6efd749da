import logging
import os
import traceback
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

import auth
import components
import guests_api
import media_api
import microsites_api
import sites_api
import templates_api
import wishes_api
from config import DATABASE_NAME, LOG_LEVEL, MONGODB_URI, PORT, cors_origins, is_production
from database import connect, create_media_storage, ensure_indexes

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


# ---------- Lifespan ----------
@asynccontextmanager
async def lifespan(app: FastAPI):
    client = None
    if MONGODB_URI:
        client, db = connect(MONGODB_URI, DATABASE_NAME)
        ensure_indexes(db)
        app.state.db = db
        app.state.media_storage = create_media_storage(db)
    else:
        logger.warning("MONGODB_URI is not set; database routes will answer 500")
    yield
    if client is not None:
        client.close()
        logger.info("MongoDB connection closed")


# ---------- App & CORS ----------
app = FastAPI(title="Evento API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Errors ----------
@app.exception_handler(StarletteHTTPException)
async def http_error(request: Request, exc: StarletteHTTPException):
    if exc.status_code == 404 and exc.detail == "Not Found":
        return JSONResponse({"error": f"Route {request.url.path} not found"}, status_code=404)
    if isinstance(exc.detail, dict):
        body = dict(exc.detail)
    else:
        body = {"error": exc.detail}
    return JSONResponse(body, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(RequestValidationError)
async def validation_error(request: Request, exc: RequestValidationError):
    messages = []
    for err in exc.errors():
        loc = ".".join(str(p) for p in err.get("loc", ()) if p != "body")
        messages.append(f"{loc}: {err['msg']}" if loc else err["msg"])
    return JSONResponse({"error": "; ".join(messages) or "Invalid request"}, status_code=400)


@app.exception_handler(Exception)
async def unhandled_error(request: Request, exc: Exception):
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    body = {"error": "Internal server error"}
    if not is_production():
        body["stack"] = "".join(traceback.format_exception(type(exc), exc, exc.__traceback__))
    return JSONResponse(body, status_code=500)


# ---------- Routers ----------
for module in (auth, templates_api, microsites_api, sites_api, guests_api, wishes_api, media_api, components):
    app.include_router(module.router, prefix="/api")


# ---------- Routes ----------
@app.get("/")
def read_root():
    return {"message": "Evento API running"}


@app.get("/health")
def health():
    return {"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}


# ---------- Diagnostics ----------
@app.get("/test")
def test_database(request: Request):
    db = getattr(request.app.state, "db", None)
    response = {
        "backend": "✅ Running",
        "database": "❌ Not Available",
        "database_name": None,
        "connection_status": "Not Connected",
        "collections": [],
        "media_storage": "✅ Ready" if getattr(request.app.state, "media_storage", None) is not None else "❌ Not Ready",
    }
    if db is not None:
        response["database_name"] = db.name
        response["connection_status"] = "Connected"
        try:
            response["collections"] = db.list_collection_names()[:10]
            response["database"] = "✅ Connected & Working"
        except Exception as e:
            logger.warning("Database check failed: %s", e)
            response["database"] = f"⚠️  Connected but Error: {str(e)[:50]}"

    response["database_url"] = "✅ Set" if MONGODB_URI else "❌ Not Set"
    return response


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=int(os.getenv("PORT", PORT)))

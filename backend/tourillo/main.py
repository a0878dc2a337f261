import logging
import uuid

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from tourillo.config import settings
from tourillo.errors import RedirectRequired
from tourillo.routers import admin_users, auth, email, pages, wishlist
from tourillo.services.auth import set_session_cookie
from tourillo.utils.logger import logger

app = FastAPI(title="Tourillo API", version="1.0.0")

origins = [o.strip() for o in settings.ALLOWED_ORIGINS.split(",") if o.strip()]
if settings.FRONTEND_URL and settings.FRONTEND_URL not in origins:
    origins.append(settings.FRONTEND_URL)

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    max_age=3600,
)


# Request logging middleware with request ID
@app.middleware("http")
async def request_logger(request: Request, call_next):
    rid = uuid.uuid4().hex[:8]
    request.state.rid = rid
    logging.info("→ %s %s rid=%s", request.method, request.url.path, rid)
    try:
        resp = await call_next(request)
    except Exception as e:
        logging.exception("Unhandled error rid=%s: %s", rid, str(e))
        error_resp = JSONResponse({"error": "internal_error", "rid": rid}, status_code=500)
        error_resp.headers["X-Request-ID"] = rid
        return error_resp

    renewed = getattr(request.state, "renewed_session_token", None)
    if renewed:
        set_session_cookie(resp, renewed)
    logging.info("← %s status=%s rid=%s", request.url.path, resp.status_code, rid)
    resp.headers["X-Request-ID"] = rid
    return resp


@app.exception_handler(RedirectRequired)
async def redirect_required_handler(request: Request, exc: RedirectRequired):
    return RedirectResponse(exc.location, status_code=303)


app.include_router(auth.router)
app.include_router(pages.router)
app.include_router(wishlist.router)
app.include_router(admin_users.router)
app.include_router(email.router)


@app.on_event("startup")
async def startup_event():
    logger.info("Tourillo API starting up (environment=%s)", settings.ENVIRONMENT)
    if settings.DATABASE_URL.startswith("sqlite"):
        logger.info("Using SQLite database; run `python -m tourillo.init_db` to create tables")
    if not settings.AUTH_GOOGLE_ID:
        logger.warning("AUTH_GOOGLE_ID is not set; Google sign-in will be unavailable")


@app.get("/healthz")
async def healthz():
    return {"status": "ok"}


@app.get("/healthz/db")
def healthz_db():
    from tourillo.models_sqlalchemy import engine

    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Database health check failed: {type(e).__name__}: {e}")
        return JSONResponse({"status": "error", "database": "unreachable"}, status_code=503)
    return {"status": "ok", "database": "reachable"}

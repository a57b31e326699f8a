import logging
import os
from typing import Any, Dict, List

from fastapi import Depends, FastAPI, HTTPException, Query, Request, Response, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import or_, text
from sqlalchemy.orm import Session

from posts_api.db import Base, engine, get_db
from posts_api.models import Post
from posts_api.pagination import PER_PAGE, build_page, fetch_page, resolve_page
from posts_api.schemas import PostIn, PostOut, PostPage

logger = logging.getLogger(__name__)


def _log_level() -> int:
    """LOG_LEVEL as a logging level; unknown names mean INFO."""
    level = logging.getLevelName((os.getenv("LOG_LEVEL") or "INFO").strip().upper())
    return level if isinstance(level, int) else logging.INFO


logging.getLogger("posts_api").setLevel(_log_level())

openapi_tags = [
    {"name": "Health", "description": "Service health and readiness endpoints."},
    {"name": "Posts", "description": "Paginated, searchable CRUD operations for posts."},
]

app = FastAPI(
    title="Posts API",
    description="REST API for managing posts (title + body) with relational persistence.",
    version="1.0.0",
    openapi_tags=openapi_tags,
)


def _parse_allowed_origins() -> List[str]:
    """
    Parse comma-separated ALLOWED_ORIGINS from env.

    Falls back to localhost dev origins when not set.
    """
    raw = (os.getenv("ALLOWED_ORIGINS") or "").strip()
    if not raw:
        return ["http://localhost:3000", "http://127.0.0.1:3000"]

    origins = [o.strip() for o in raw.split(",")]
    return [o for o in origins if o]


def _parse_allowed_origin_regex() -> str | None:
    """Return ALLOWED_ORIGIN_REGEX if set; no regex matching otherwise."""
    raw = (os.getenv("ALLOWED_ORIGIN_REGEX") or "").strip()
    return raw or None


app.add_middleware(
    CORSMiddleware,
    allow_origins=_parse_allowed_origins(),
    allow_origin_regex=_parse_allowed_origin_regex(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


_VALIDATION_MESSAGES = {
    "missing": "The {field} field is required.",
    "string_too_short": "The {field} field is required.",
    "string_type": "The {field} field must be a string.",
    "string_too_long": "The {field} field must not be greater than {max_length} characters.",
}


def _error_field(loc: tuple) -> str:
    """Name the input an error belongs to; errors on the request as a whole map to 'payload'."""
    parts = [str(p) for p in loc[1:]] if loc and loc[0] in ("body", "query", "path") else []
    if not parts or not isinstance(loc[1], str):
        return "payload"
    return ".".join(parts)


def _error_message(error: Dict[str, Any], field: str) -> str:
    error_type = error.get("type", "")
    if error_type == "string_type" and error.get("input") is None:
        error_type = "missing"
    template = _VALIDATION_MESSAGES.get(error_type)
    if template is None or field == "payload":
        return error.get("msg", "Invalid value.")
    return template.format(field=field, **(error.get("ctx") or {}))


@app.exception_handler(RequestValidationError)
async def _validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Return 422 with messages grouped per field.

    Shape: {"message": "<first> (and N more errors)", "errors": {"title": ["..."]}}
    """
    errors: Dict[str, List[str]] = {}
    for error in exc.errors():
        field = _error_field(tuple(error.get("loc") or ()))
        errors.setdefault(field, []).append(_error_message(error, field))

    messages = [m for field_messages in errors.values() for m in field_messages]
    message = messages[0] if messages else "The given data was invalid."
    if len(messages) > 1:
        extra = len(messages) - 1
        message = f"{message} (and {extra} more error{'s' if extra > 1 else ''})"

    logger.info("Validation failed on %s %s fields=%s", request.method, request.url.path, sorted(errors))
    return JSONResponse(
        status_code=422,
        content={"message": message, "errors": errors},
    )


@app.exception_handler(Exception)
async def _unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Return a generic JSON 500 for unexpected errors (DB connectivity, coding errors)."""
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"detail": "Internal Server Error"},
    )


@app.on_event("startup")
def _startup_create_tables() -> None:
    """
    Create database tables if they do not exist.

    A database that is down at boot must not keep the service from binding its port;
    /health/db reports readiness.
    """
    try:
        Base.metadata.create_all(bind=engine)
    except Exception:
        logger.exception("Database initialization failed during startup (tables not created).")


# Largest value a BIGINT primary key can hold.
_MAX_ID = 2**63 - 1


def _get_post_or_404(db: Session, post_id: str) -> Post:
    """Resolve a route identifier to a Post, raising 404 when nothing matches."""
    post = None
    if post_id.isascii() and post_id.isdigit() and int(post_id) <= _MAX_ID:
        post = db.get(Post, int(post_id))
    if not post:
        raise HTTPException(status_code=404, detail="Post not found")
    return post


def _search_pattern(search: str) -> str:
    """LIKE pattern matching ``search`` as a literal substring."""
    escaped = search.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"


# PUBLIC_INTERFACE
@app.get("/", tags=["Health"], summary="Health check", description="Returns a simple health payload.")
def health_check() -> Dict[str, str]:
    """Health check endpoint used by monitoring."""
    return {"message": "Healthy"}


# PUBLIC_INTERFACE
@app.get(
    "/health/db",
    tags=["Health"],
    summary="Database health check",
    description=(
        "Verifies database connectivity by running a lightweight read-only query (SELECT 1). "
        "Returns status=up when the query succeeds, otherwise status=down with error details."
    ),
)
def health_check_db(db: Session = Depends(get_db)) -> Dict[str, Any]:
    """Database readiness endpoint used to verify DB connectivity."""
    try:
        value = db.execute(text("SELECT 1")).scalar_one()
        return {"status": "up", "query": "SELECT 1", "result": int(value)}
    except Exception as exc:
        return {"status": "down", "error": str(exc)}


# PUBLIC_INTERFACE
@app.get(
    "/posts",
    response_model=PostPage,
    tags=["Posts"],
    summary="List posts",
    description=(
        f"Return posts ordered by id ascending, {PER_PAGE} per page. "
        "`search` filters on a case-insensitive substring of title or body."
    ),
)
def list_posts(
    request: Request,
    search: str | None = Query(None, description="Substring to look for in title or body."),
    page: str | None = Query(None, description="1-based page number; invalid values mean page 1."),
    db: Session = Depends(get_db),
) -> PostPage:
    """List posts, one page at a time."""
    query = db.query(Post)
    search = (search or "").strip()
    if search:
        pattern = _search_pattern(search)
        query = query.filter(or_(Post.title.ilike(pattern, escape="\\"), Post.body.ilike(pattern, escape="\\")))

    current_page = resolve_page(page)
    items, total = fetch_page(query.order_by(Post.id.asc()), current_page)
    payload = build_page(request.url, [PostOut.model_validate(p) for p in items], total, current_page)
    return PostPage.model_validate(payload)


# PUBLIC_INTERFACE
@app.post(
    "/posts",
    response_model=PostOut,
    status_code=status.HTTP_201_CREATED,
    tags=["Posts"],
    summary="Create post",
    description="Create a new post with a title and body. Unknown fields are ignored.",
)
def create_post(payload: PostIn, db: Session = Depends(get_db)) -> PostOut:
    """Create a post."""
    logger.info("Creating post title_len=%s body_len=%s", len(payload.title), len(payload.body))
    try:
        post = Post().fill(payload.model_dump())
        db.add(post)
        db.commit()
        db.refresh(post)
        return post
    except Exception as exc:
        logger.exception("Failed creating post due to server error: %s", str(exc))
        raise


# PUBLIC_INTERFACE
@app.get(
    "/posts/{post_id}",
    response_model=PostOut,
    tags=["Posts"],
    summary="Get post",
    description="Fetch a single post by ID.",
)
def get_post(post_id: str, db: Session = Depends(get_db)) -> PostOut:
    """Get a post by id."""
    return _get_post_or_404(db, post_id)


# PUBLIC_INTERFACE
@app.api_route(
    "/posts/{post_id}",
    methods=["PUT", "PATCH"],
    response_model=PostOut,
    tags=["Posts"],
    summary="Update post",
    description="Replace a post's title and body. Both fields are required.",
)
def update_post(post_id: str, payload: PostIn, db: Session = Depends(get_db)) -> PostOut:
    """Update a post by id."""
    post = _get_post_or_404(db, post_id)

    post.fill(payload.model_dump())
    db.add(post)
    db.commit()
    db.refresh(post)
    logger.info("Updated post id=%s", post.id)
    return post


# PUBLIC_INTERFACE
@app.delete(
    "/posts/{post_id}",
    status_code=status.HTTP_204_NO_CONTENT,
    tags=["Posts"],
    summary="Delete post",
    description="Permanently delete a post by ID.",
)
def delete_post(post_id: str, db: Session = Depends(get_db)) -> Response:
    """Delete a post by id."""
    post = _get_post_or_404(db, post_id)

    db.delete(post)
    db.commit()
    logger.info("Deleted post id=%s", post_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)

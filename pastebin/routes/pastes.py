"""
Paste routes.
Handles create, fetch (raw, API and HTML) and removal.
"""
import html
import logging
from urllib.parse import parse_qs

from fastapi import APIRouter, Depends, Form, Request
from fastapi.responses import HTMLResponse, Response
from starlette.concurrency import run_in_threadpool

from pastebin.errors import (
    PasteAuthorizationError,
    PasteError,
    PasteValidationError,
    PayloadTooLarge,
)
from pastebin.models import PasteCreate, PasteCreated, PasteView, RemoveResult
from pastebin.service import CreatedPaste, PasteService

router = APIRouter()
logger = logging.getLogger(__name__)

# Room for the form field name or the JSON wrapper around the content
_ENVELOPE_SLACK = 1024


def get_service(request: Request) -> PasteService:
    return request.app.state.service


def _media_type(request: Request) -> str:
    return request.headers.get("content-type", "").split(";")[0].strip().lower()


def _request_ceiling(max_content_bytes: int) -> int:
    """Largest request body accepted, whatever its media type."""
    return max_content_bytes + _ENVELOPE_SLACK


async def read_limited_body(request: Request, limit: int) -> bytes:
    """
    Read the request body without ever buffering more than limit bytes.

    Raises:
        PayloadTooLarge: If Content-Length or the streamed body exceeds limit
    """
    declared = request.headers.get("content-length")
    if declared is not None:
        try:
            declared_length = int(declared)
        except ValueError:
            raise PasteValidationError("Invalid Content-Length header")
        if declared_length > limit:
            logger.warning(f"Rejected upload: declared {declared_length} bytes > {limit}")
            raise PayloadTooLarge()

    body = bytearray()
    async for chunk in request.stream():
        body.extend(chunk)
        if len(body) > limit:
            logger.warning(f"Rejected upload: body exceeded {limit} bytes")
            raise PayloadTooLarge()
    return bytes(body)


def _content_from_json(body: bytes) -> str:
    try:
        return PasteCreate.model_validate_json(body).content
    except ValueError as e:
        raise PasteValidationError(f"Invalid JSON paste: {e}")


def _content_from_form(body: bytes) -> str:
    try:
        fields = parse_qs(body.decode("utf-8"), keep_blank_values=True)
    except UnicodeDecodeError:
        raise PasteValidationError("Form body must be UTF-8")
    if "paste" not in fields:
        raise PasteValidationError("Missing 'paste' field")
    return fields["paste"][0]


def _created_response(created: CreatedPaste) -> PasteCreated:
    return PasteCreated(
        id=created.paste_id,
        key=created.key,
        ttl=created.ttl,
        link=created.link,
    )


@router.post("/", response_model=PasteCreated, status_code=201)
async def create_paste(
    request: Request,
    service: PasteService = Depends(get_service),
) -> PasteCreated:
    """
    Create a new paste.

    Accepts a form body ``paste=<text>``, JSON ``{"content": <text>}`` or a
    raw ``text/plain`` body.

    Returns:
        Paste ID, deletion key, TTL and shareable link
    """
    media_type = _media_type(request)
    body = await read_limited_body(request, _request_ceiling(service.max_content_bytes))

    if media_type == "application/json":
        content = _content_from_json(body)
    elif media_type == "application/x-www-form-urlencoded":
        content = _content_from_form(body)
    else:
        content = body

    created = await run_in_threadpool(service.create, content)
    return _created_response(created)


@router.post("/api/pastes", response_model=PasteCreated, status_code=201)
async def create_paste_json(
    request: Request,
    service: PasteService = Depends(get_service),
) -> PasteCreated:
    """Create a new paste from a JSON body."""
    body = await read_limited_body(request, _request_ceiling(service.max_content_bytes))
    content = _content_from_json(body)
    created = await run_in_threadpool(service.create, content)
    return _created_response(created)


@router.get("/api/pastes/{paste_id}", response_model=PasteView)
def fetch_paste(
    paste_id: str,
    service: PasteService = Depends(get_service),
) -> PasteView:
    """Fetch a paste (API endpoint)."""
    paste = service.get(paste_id)
    return PasteView(
        id=paste.paste_id,
        content=paste.content.decode("utf-8", errors="replace"),
        created_at=paste.created_at,
        expires_at=paste.expires_at,
    )


@router.post("/remove", response_model=RemoveResult)
def remove_paste(
    paste_id: str = Form(""),
    paste_key: str = Form(""),
    service: PasteService = Depends(get_service),
) -> RemoveResult:
    """
    Remove a paste with its deletion key.

    A malformed ID, an unknown ID and a wrong key all produce the same
    response so the endpoint cannot be used to probe for pastes.
    """
    try:
        removed = service.delete(paste_id, paste_key)
    except (PasteValidationError, PasteAuthorizationError):
        removed = False
    if not removed:
        raise PasteAuthorizationError()
    return RemoveResult(message=f"Paste {paste_id} removed")


@router.get("/p/{paste_id}", response_class=HTMLResponse)
def view_paste(
    paste_id: str,
    service: PasteService = Depends(get_service),
) -> HTMLResponse:
    """View a paste as HTML, or a 404 page if it is gone."""
    try:
        paste = service.get(paste_id)
    except PasteError as e:
        if e.status_code >= 500:
            raise
        return HTMLResponse(_render_404_page(), status_code=404)

    content = html.escape(paste.content.decode("utf-8", errors="replace"))
    body = f"""<div class="paste-id">ID: {html.escape(paste.paste_id)}</div>
        <pre class="content">{content}</pre>
        <div class="footer"><a href="/">Create a new paste</a></div>"""
    return HTMLResponse(render_page("Paste", body))


@router.get("/{paste_id}")
def retrieve_paste(
    paste_id: str,
    service: PasteService = Depends(get_service),
) -> Response:
    """Return the raw paste content."""
    content = service.retrieve(paste_id)
    return Response(content=content, media_type="text/plain; charset=utf-8")


def render_page(title: str, body: str) -> str:
    """Wrap body in the shared page layout."""
    return f"""<!DOCTYPE html>
<html>
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>{html.escape(title)} - Pastebin</title>
    <style>
        body {{
            font-family: -apple-system, BlinkMacSystemFont, "Segoe UI", Roboto, Arial, sans-serif;
            background: #f0f2f5;
            margin: 0;
            padding: 40px 20px;
        }}
        .container {{
            background: white;
            border-radius: 8px;
            max-width: 900px;
            margin: 0 auto;
            padding: 32px;
        }}
        .paste-id {{
            color: #666;
            font-family: monospace;
            margin-bottom: 16px;
        }}
        .content, textarea {{
            width: 100%;
            box-sizing: border-box;
            font-family: "Courier New", monospace;
            white-space: pre-wrap;
            word-wrap: break-word;
        }}
        .footer {{
            margin-top: 20px;
            text-align: center;
        }}
    </style>
</head>
<body>
    <div class="container">
        <h1>Pastebin</h1>
        {body}
    </div>
</body>
</html>"""


def _render_404_page() -> str:
    """Render a 404 error page."""
    return render_page(
        "Not Found",
        """<p>This paste was not found or has expired.</p>
        <div class="footer"><a href="/">Create a new paste</a></div>""",
    )

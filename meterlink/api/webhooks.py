"""
POST /webhooks/{chirpstack,ttn,lorawan} endpoints for network-server uplinks.

Each delivery is one JSON document. The body is normalized and stored by
the ingestion service, and the handler always answers ``200 ok``: network
servers retry non-2xx responses, and a document that cannot be stored now
will not become storable on retry. Dropped and failed deliveries are
visible in the logs and on ``GET /debug/last``.

CHANGELOG:
- 2026-10-18: Acknowledge bodies nested too deeply to decode
- 2026-10-17: Enforce MAX_REQUEST_BYTES without rejecting the delivery
- 2026-10-14: Initial creation

TODO:
- None
"""

import json
import logging

from fastapi import APIRouter, Request
from fastapi.responses import PlainTextResponse

from meterlink.api.deps import AppSettings, DbSession, Events
from meterlink.services.ingestion import ingest_document

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/webhooks", tags=["webhooks"])

WEBHOOK_SOURCES = ("chirpstack", "ttn", "lorawan")


def _ok() -> PlainTextResponse:
    return PlainTextResponse("ok", status_code=200)


async def _read_body(request: Request, max_request_bytes: int) -> bytes | None:
    """Return the request body, or ``None`` if it exceeds the limit."""
    content_length = request.headers.get("content-length")
    if content_length is not None:
        try:
            if int(content_length) > max_request_bytes:
                return None
        except ValueError:
            logger.warning("Ignoring invalid Content-Length header %r", content_length)

    body = await request.body()
    if len(body) > max_request_bytes:
        return None
    return body


async def handle_webhook(
    source: str,
    request: Request,
    db: DbSession,
    settings: AppSettings,
    events: Events,
) -> PlainTextResponse:
    """Normalize, store and acknowledge one uplink delivery.

    Args:
        source: Which webhook path received the delivery (for logging).
        request: The incoming request.
        db: Async database session.
        settings: Service settings (body size limit).
        events: Recent-events log.

    Returns:
        PlainTextResponse: Always ``200 ok``.
    """
    event = request.query_params.get("event") or "(none)"

    body = await _read_body(request, settings.max_request_bytes)
    if body is None:
        logger.warning(
            "Dropped %s delivery exceeding %d bytes", source, settings.max_request_bytes
        )
        events.push("up-oversized", source=source)
        return _ok()

    try:
        document = json.loads(body) if body else {}
    except (ValueError, RecursionError):
        logger.warning("Dropped %s delivery with invalid JSON body (%d bytes)", source, len(body))
        events.push("up-invalid", source=source)
        return _ok()

    logger.debug(
        "RECV source=%s event=%s keys=%s length=%d",
        source,
        event,
        sorted(document) if isinstance(document, dict) else type(document).__name__,
        len(body),
    )

    outcome = await ingest_document(db, document, events)
    logger.debug(
        "Webhook %s processed: status=%s dev_eui=%s",
        source,
        outcome.status.value,
        outcome.dev_eui,
    )
    return _ok()


# ---------------------------------------------------------------------------
# Routes
# ---------------------------------------------------------------------------


@router.post("/chirpstack", response_class=PlainTextResponse)
async def chirpstack_webhook(
    request: Request, db: DbSession, settings: AppSettings, events: Events
) -> PlainTextResponse:
    """ChirpStack HTTP integration endpoint."""
    return await handle_webhook("chirpstack", request, db, settings, events)


@router.post("/ttn", response_class=PlainTextResponse)
async def ttn_webhook(
    request: Request, db: DbSession, settings: AppSettings, events: Events
) -> PlainTextResponse:
    """The Things Network / TTS webhook endpoint."""
    return await handle_webhook("ttn", request, db, settings, events)


@router.post("/lorawan", response_class=PlainTextResponse)
async def lorawan_webhook(
    request: Request, db: DbSession, settings: AppSettings, events: Events
) -> PlainTextResponse:
    """Provider-agnostic endpoint for any other network server or bridge."""
    return await handle_webhook("lorawan", request, db, settings, events)

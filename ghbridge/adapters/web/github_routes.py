"""GitHub webhook ingress route."""

import hashlib
import hmac
import json
import sys
from typing import Optional

from fastapi import APIRouter, Header, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from ghbridge.ports.inbound import WebhookDelivery

github_router = APIRouter(tags=["GitHub"])


def _log(msg: str):
    print(msg, file=sys.stderr)


class WebhookResponse(BaseModel):
    status: str  # "routed" | "ignored" | "rejected" | "pong"
    kind: Optional[str] = None
    action: Optional[str] = None
    channel_id: Optional[int] = None
    reason: Optional[str] = None


def verify_signature(secret: str, body: bytes, signature_header: str) -> bool:
    """Check an ``X-Hub-Signature-256`` header against the shared secret."""
    if not secret or not signature_header.startswith("sha256="):
        return False
    expected = "sha256=" + hmac.new(secret.encode("utf-8"), body, hashlib.sha256).hexdigest()
    return hmac.compare_digest(expected, signature_header)


@github_router.post("/github-webhook", response_model=WebhookResponse)
async def github_webhook(
    request: Request,
    x_github_event: str = Header(default=""),
    x_github_delivery: str = Header(default=""),
    x_hub_signature_256: str = Header(default=""),
):
    config = request.app.state.config
    bridge = request.app.state.bridge

    body = await request.body()
    if config.webhook_secret and not verify_signature(config.webhook_secret, body, x_hub_signature_256):
        _log(f"[webhook] bad signature on delivery {x_github_delivery or '-'}")
        raise HTTPException(status_code=401, detail="bad signature")

    if x_github_event == "ping":
        return WebhookResponse(status="pong")

    try:
        payload = json.loads(body or b"null")
    except (ValueError, UnicodeDecodeError):
        raise HTTPException(status_code=400, detail="body is not valid JSON")

    delivery = WebhookDelivery(event_name=x_github_event, payload=payload, delivery_id=x_github_delivery)
    result = bridge.handle(delivery)
    routed = result.routed
    if not routed.routable:
        return WebhookResponse(status="ignored", action=routed.action or None, reason=routed.reason)
    if not result.accepted:
        return JSONResponse(
            status_code=503,
            content=WebhookResponse(
                status="rejected",
                kind=routed.kind.value,
                action=routed.action,
                reason="shutting down",
            ).model_dump(),
        )

    return JSONResponse(
        status_code=202,
        content=WebhookResponse(
            status="routed",
            kind=routed.kind.value,
            action=routed.action,
            channel_id=routed.channel_id,
        ).model_dump(),
    )


@github_router.get("/health")
async def health(request: Request):
    return {"ok": True, "dispatch": request.app.state.bridge.dispatcher.stats()}

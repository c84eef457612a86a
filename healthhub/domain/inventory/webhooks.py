"""
Pharmacy inventory webhooks
Event emission and signed delivery to external integrations
"""

import json
import logging
from datetime import timedelta
from typing import Optional

import httpx
from sqlalchemy.orm import Session

from ...config import WEBHOOK_TIMEOUT_SECONDS
from ...models_pharmacy import PharmacyIntegration, WebhookDelivery
from ...security_utils import signature_header
from ...shared.clock import utcnow

logger = logging.getLogger(__name__)

WEBHOOK_EVENTS = (
    "product.created",
    "product.updated",
    "product.deleted",
    "stock.received",
    "stock.adjusted",
    "stock.low",
    "stock.out",
    "stock.expiring",
    "stock.expired",
)

# Backoff after the 1st, 2nd and later failed attempts (seconds)
RETRY_DELAYS = (60, 300, 1800)
DEFAULT_MAX_ATTEMPTS = 3
MAX_RESPONSE_BODY = 1000

ALERT_EVENTS = {
    "low": "stock.low",
    "out": "stock.out",
    "expiring": "stock.expiring",
    "expired": "stock.expired",
}


class WebhookDeliveryError(Exception):
    """Non-2xx response from an integration endpoint"""


def retry_delay(attempts: int) -> int:
    return RETRY_DELAYS[min(attempts - 1, len(RETRY_DELAYS) - 1)]


def subscribes_to(config: Optional[dict], event: str) -> bool:
    """An empty or missing events list means every event"""
    events = (config or {}).get("events") or []
    return not events or event in events


def encode_payload(payload: dict) -> bytes:
    return json.dumps(payload, separators=(",", ":"), default=str).encode("utf-8")


# ============================================================================
# EVENT EMISSION
# ============================================================================


def emit_event(db: Session, pharmacy_id: str, event: str, data: dict) -> int:
    """
    Queue a delivery for every active webhook integration subscribed to the event.

    Rows are added to the session only, the caller's commit persists them.

    Returns:
        Number of deliveries queued
    """
    integrations = (
        db.query(PharmacyIntegration)
        .filter(
            PharmacyIntegration.pharmacy_id == pharmacy_id,
            PharmacyIntegration.integration_type == "webhook",
            PharmacyIntegration.is_active.is_(True),
        )
        .all()
    )
    if not integrations:
        return 0

    payload = {
        "event": event,
        "pharmacy_id": pharmacy_id,
        "timestamp": utcnow().isoformat() + "Z",
        "data": json.loads(json.dumps(data, default=str)),
    }

    queued = 0
    for integration in integrations:
        if not subscribes_to(integration.config, event):
            continue
        db.add(
            WebhookDelivery(
                integration_id=integration.id,
                pharmacy_id=pharmacy_id,
                event_type=event,
                payload=payload,
                status="pending",
                attempts=0,
                max_attempts=DEFAULT_MAX_ATTEMPTS,
                next_retry_at=utcnow(),
            )
        )
        queued += 1

    if queued:
        logger.info(f"📨 Queued {queued} webhook delivery(ies) for {event} ({pharmacy_id})")
    return queued


def emit_stock_alert(db: Session, pharmacy_id: str, alert_type: str, data: dict) -> int:
    return emit_event(db, pharmacy_id, ALERT_EVENTS[alert_type], data)


# ============================================================================
# DELIVERY
# ============================================================================


async def deliver_webhook(
    db: Session, delivery: WebhookDelivery, client: Optional[httpx.AsyncClient] = None
) -> bool:
    """
    POST one queued delivery to its integration and record the outcome.

    Failures are rescheduled with backoff until max_attempts is reached,
    then the delivery is marked failed and the integration records the error.
    """
    integration = delivery.integration
    config = (integration.config if integration else None) or {}
    url = config.get("url")
    if not url:
        delivery.status = "failed"
        delivery.error_message = "No webhook URL configured"
        delivery.next_retry_at = None
        db.commit()
        return False

    body = encode_payload(delivery.payload)
    headers = {
        "Content-Type": "application/json",
        "X-Webhook-Event": delivery.event_type,
        "X-Webhook-Delivery-Id": delivery.id,
    }
    if config.get("secret"):
        headers["X-Webhook-Signature"] = signature_header(config["secret"], body)

    attempts = (delivery.attempts or 0) + 1
    try:
        if client is None:
            async with httpx.AsyncClient(timeout=WEBHOOK_TIMEOUT_SECONDS) as own_client:
                response = await own_client.post(url, content=body, headers=headers)
        else:
            response = await client.post(url, content=body, headers=headers)

        if not response.is_success:
            raise WebhookDeliveryError(f"HTTP {response.status_code}: {response.text[:200]}")

        now = utcnow()
        delivery.status = "success"
        delivery.attempts = attempts
        delivery.response_status = response.status_code
        delivery.response_body = response.text[:MAX_RESPONSE_BODY]
        delivery.delivered_at = now
        delivery.next_retry_at = None
        integration.last_sync_at = now
        integration.last_sync_status = "success"
        db.commit()
        logger.info(f"✅ Webhook {delivery.id} delivered ({delivery.event_type})")
        return True

    except (httpx.HTTPError, WebhookDeliveryError) as e:
        max_attempts = delivery.max_attempts or DEFAULT_MAX_ATTEMPTS
        delivery.attempts = attempts
        delivery.error_message = str(e) or e.__class__.__name__

        if attempts >= max_attempts:
            delivery.status = "failed"
            delivery.next_retry_at = None
            integration.last_sync_at = utcnow()
            integration.last_sync_status = "failed"
            integration.last_error = delivery.error_message
            logger.error(f"❌ Webhook {delivery.id} failed after {attempts} attempts: {e}")
        else:
            delivery.status = "pending"
            delivery.next_retry_at = utcnow() + timedelta(seconds=retry_delay(attempts))
            logger.warning(f"⚠️ Webhook {delivery.id} attempt {attempts} failed, retrying: {e}")

        db.commit()
        return False


async def process_pending_webhooks(
    db: Session, limit: int = 10, client: Optional[httpx.AsyncClient] = None
) -> int:
    """Deliver due pending deliveries, oldest schedule first. Returns how many were attempted."""
    pending = (
        db.query(WebhookDelivery)
        .filter(WebhookDelivery.status == "pending", WebhookDelivery.next_retry_at <= utcnow())
        .order_by(WebhookDelivery.next_retry_at.asc())
        .limit(limit)
        .all()
    )
    if not pending:
        return 0

    if client is None:
        async with httpx.AsyncClient(timeout=WEBHOOK_TIMEOUT_SECONDS) as own_client:
            for delivery in pending:
                await deliver_webhook(db, delivery, own_client)
    else:
        for delivery in pending:
            await deliver_webhook(db, delivery, client)

    return len(pending)

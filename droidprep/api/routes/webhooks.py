"""Webhook routes for droidprep"""

import time
from typing import Any, Dict

from flask import Blueprint, Response, current_app, jsonify, request
from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

from droidprep.core.exceptions import ConfigurationError, EventError, HostError
from droidprep.core.triage import triage
from droidprep.extensions import GITHUB_EXTENSION, limiter
from droidprep.webhooks.handlers import PING_EVENT, GitHubWebhookHandler, WebhookHandlerFactory

from ..exceptions import (
    DispatchRejectedError,
    InvalidPayloadError,
    UpstreamError,
    WebhookError,
)

webhooks_bp = Blueprint("webhooks", __name__)

# Webhook metrics
WEBHOOK_REQUESTS = Counter(
    'droidprep_webhook_requests_total',
    'Total number of webhook requests',
    ['service', 'outcome']
)

WEBHOOK_LATENCY = Histogram(
    'droidprep_webhook_processing_seconds',
    'Time taken to triage a webhook',
    ['service']
)

def init_webhook_handlers(app):
    """Initialize webhook handlers"""
    WebhookHandlerFactory.register("github", GitHubWebhookHandler)
    app.logger.info(
        "Webhook handlers registered successfully",
        extra={
            "registered_handlers": WebhookHandlerFactory.services(),
            "supported_events": sorted(GitHubWebhookHandler.SUPPORTED_EVENTS),
        },
    )

def _webhook_rate_limit() -> str:
    return current_app.config.get("WEBHOOK_RATE_LIMIT", "100/minute")

@webhooks_bp.route("/webhooks/health")
def health():
    """Health check endpoint for webhooks"""
    return jsonify(
        {
            "status": "healthy",
            "services": WebhookHandlerFactory.services(),
        }
    )

@webhooks_bp.route("/metrics")
def metrics():
    """Prometheus exposition of the process metrics"""
    return Response(generate_latest(), mimetype=CONTENT_TYPE_LATEST)

@webhooks_bp.route("/webhooks/<service>", methods=["POST"])
@limiter.limit(_webhook_rate_limit)
def webhook(service: str) -> Dict[str, Any]:
    """Validate a webhook and report the run it would dispatch"""
    start_time = time.time()
    try:
        current_app.logger.info(
            f"Received {service} webhook",
            extra={
                "service": service,
                "event_type": request.headers.get("X-GitHub-Event", "unknown"),
                "delivery_id": request.headers.get("X-GitHub-Delivery", "unknown"),
            },
        )

        payload = request.get_json(silent=True)
        if not isinstance(payload, dict):
            raise InvalidPayloadError("Request body must be a JSON object")

        headers = request.headers
        handler = WebhookHandlerFactory.create(
            service=service, headers=headers, payload=payload
        )

        handler.validate_signature(request.data)
        event_type = handler.validate_event_type()

        if event_type == PING_EVENT:
            WEBHOOK_REQUESTS.labels(service=service, outcome="ping").inc()
            return jsonify(
                {"status": "ok", "message": "Webhook configured successfully"}
            )

        raw_event = handler.standardize_event()
        try:
            decision = triage(
                raw_event,
                current_app.config["ACTION_INPUTS"],
                current_app.extensions.get(GITHUB_EXTENSION),
            )
        except EventError as e:
            raise InvalidPayloadError(str(e)) from e
        except ConfigurationError as e:
            raise DispatchRejectedError(str(e)) from e
        except HostError as e:
            raise UpstreamError(str(e)) from e

        WEBHOOK_REQUESTS.labels(service=service, outcome=decision["status"]).inc()
        WEBHOOK_LATENCY.labels(service=service).observe(time.time() - start_time)

        current_app.logger.info(
            "Webhook processed successfully",
            extra={
                "service": service,
                "event_type": event_type,
                "mode": decision.get("mode"),
            },
        )
        decision["delivery_id"] = handler.delivery_id
        return jsonify(decision)

    except WebhookError as e:
        WEBHOOK_REQUESTS.labels(service=service, outcome="rejected").inc()
        current_app.logger.warning(
            "Webhook error", extra={"error": str(e), "status_code": e.status_code}
        )
        return jsonify({"error": str(e)}), e.status_code

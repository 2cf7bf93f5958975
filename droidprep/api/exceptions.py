"""Webhook-specific exceptions"""

class WebhookError(Exception):
    """Base class for webhook errors"""
    status_code = 500

class InvalidSignatureError(WebhookError):
    """Invalid webhook signature"""
    status_code = 401

class UnsupportedEventError(WebhookError):
    """Unsupported event type"""
    status_code = 400

class InvalidPayloadError(WebhookError):
    """Payload does not have the shape its event type requires"""
    status_code = 400

class DispatchRejectedError(WebhookError):
    """Event cannot be dispatched under the current configuration"""
    status_code = 422

class UpstreamError(WebhookError):
    """The source-control host could not answer a triage lookup"""
    status_code = 502

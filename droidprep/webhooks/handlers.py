"""Webhook handlers for source-control events"""

from abc import ABC, abstractmethod
from flask import current_app
from werkzeug.datastructures import Headers
from typing import Dict, Any, List, Mapping, Optional, Type
import hmac
import hashlib

from droidprep.api.exceptions import (
    InvalidSignatureError,
    UnsupportedEventError
)
from droidprep.core.types.events import SUPPORTED_EVENTS, RawEvent

PING_EVENT = 'ping'

class WebhookHandler(ABC):
    """Turns one signed delivery into a RawEvent"""

    def __init__(self, headers: Mapping[str, str], payload: Dict[str, Any]):
        # Header names are matched case-insensitively
        self.headers = Headers(headers)
        self.payload = payload

    @property
    def delivery_id(self) -> Optional[str]:
        return None

    @abstractmethod
    def validate_signature(self, request_data: bytes) -> None:
        """Reject deliveries whose body was not signed with our secret"""
        pass

    @abstractmethod
    def validate_event_type(self) -> str:
        """Return the event name, rejecting kinds the normalizer cannot handle"""
        pass

    @abstractmethod
    def standardize_event(self) -> RawEvent:
        pass

class WebhookHandlerFactory:
    """Registry of handlers keyed by the service segment of the URL"""

    _handlers: Dict[str, Type[WebhookHandler]] = {}

    @classmethod
    def register(cls, service: str, handler_class: Type[WebhookHandler]) -> None:
        cls._handlers[service] = handler_class

    @classmethod
    def create(cls, service: str, headers: Mapping[str, str],
               payload: Dict[str, Any]) -> WebhookHandler:
        handler_class = cls._handlers.get(service)
        if handler_class is None:
            raise UnsupportedEventError(f"No handler for service: {service}")
        return handler_class(headers, payload)

    @classmethod
    def services(cls) -> List[str]:
        return sorted(cls._handlers)

class GitHubWebhookHandler(WebhookHandler):
    """Handles GitHub webhook deliveries"""

    SUPPORTED_EVENTS = set(SUPPORTED_EVENTS)
    SIGNATURE_PREFIX = 'sha256='

    @property
    def event_name(self) -> str:
        return self.headers.get('X-GitHub-Event', PING_EVENT)

    @property
    def delivery_id(self) -> Optional[str]:
        return self.headers.get('X-GitHub-Delivery')

    def validate_signature(self, request_data: bytes) -> None:
        """Check X-Hub-Signature-256 against the configured webhook secret"""
        signature = self.headers.get('X-Hub-Signature-256')
        if not signature or not signature.startswith(self.SIGNATURE_PREFIX):
            raise InvalidSignatureError("No signature provided")

        secret = current_app.config.get('GITHUB_WEBHOOK_SECRET') or ''
        if not secret:
            raise InvalidSignatureError("Webhook secret is not configured")

        digest = hmac.new(secret.encode(), request_data, hashlib.sha256).hexdigest()
        if not hmac.compare_digest(signature, self.SIGNATURE_PREFIX + digest):
            raise InvalidSignatureError("Invalid signature")

    def validate_event_type(self) -> str:
        event_name = self.event_name
        if event_name != PING_EVENT and event_name not in self.SUPPORTED_EVENTS:
            raise UnsupportedEventError(f"Unsupported event type: {event_name}")
        return event_name

    def standardize_event(self) -> RawEvent:
        """Wrap the payload for the normalizer; the sender is the actor"""
        return RawEvent(
            event_name=self.event_name,
            payload=self.payload,
            actor=(self.payload.get('sender') or {}).get('login', ''),
        )

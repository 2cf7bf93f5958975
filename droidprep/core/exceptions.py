"""Core module exceptions"""

class CoreError(Exception):
    """Base class for core module errors"""
    pass

class ConfigurationError(CoreError):
    """Contradictory or missing configuration for the chosen mode"""
    pass

class ActorNotAllowed(ConfigurationError):
    """Raised when the triggering actor may not start a run"""
    def __init__(self, actor: str, actor_type: str):
        self.actor = actor
        self.actor_type = actor_type
        super().__init__(
            f"Workflow initiated by non-human actor: {actor} (type: {actor_type}). "
            "Add bot to allowed_bots list or use '*' to allow all bots."
        )

class EventError(CoreError):
    """Base class for webhook event shape errors"""
    pass

class UnsupportedEventKind(EventError):
    """Raised when the event name is not one of the supported kinds"""
    def __init__(self, event_name: str):
        self.event_name = event_name
        super().__init__(f"Unsupported event type: {event_name}")

class MissingPayloadField(EventError):
    """Raised when a required payload sub-object is absent"""
    def __init__(self, event_name: str, field: str):
        self.event_name = event_name
        self.field = field
        super().__init__(f"{event_name} event payload is missing '{field}'")

class EventDataError(CoreError):
    """Raised when an event data variant cannot be built from the context"""
    pass

class HostError(CoreError):
    """Base class for source-control host API errors"""
    pass

class TransientHostError(HostError):
    """Network or rate-limit failure that may succeed on retry"""
    pass

class EntityNotFound(HostError):
    """Raised when the pull request or issue no longer exists"""
    def __init__(self, kind: str, number: int):
        self.kind = kind
        self.number = number
        super().__init__(f"{kind} #{number} not found")

class MaterializationError(CoreError):
    """Raised when the diff or comment artifacts cannot be produced"""
    pass

class InvariantViolation(CoreError):
    """Internal state that should be impossible"""
    pass

class McpRegistrationError(CoreError):
    """Raised when capability servers could not be registered"""
    pass

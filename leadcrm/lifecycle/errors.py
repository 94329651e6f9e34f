"""
Lifecycle error taxonomy.

Validation and lookup errors are raised before any mutation. Infrastructure
errors raised from a command propagate so the caller's transaction rolls back;
the sweep catches them at the nearest boundary instead.
"""


class LifecycleError(Exception):
    """Base class for follow-up lifecycle errors."""


class ValidationError(LifecycleError):
    """Command input is incomplete or malformed."""

    def __init__(self, message, field=None):
        self.field = field
        super().__init__(message)


class NotFoundError(LifecycleError):
    """The referenced entity does not exist."""


class ConfigMissingError(NotFoundError):
    """No remind configuration row exists for an intention level."""

    def __init__(self, intention_level):
        self.intention_level = intention_level
        super().__init__(f"No follow-up remind config for intention level '{intention_level}'")


class TransientInfraError(LifecycleError):
    """Database or delivery failure that a later attempt may not hit."""


class NotificationError(TransientInfraError):
    """One or more notification channels failed to deliver."""

    def __init__(self, failures):
        self.failures = dict(failures)
        channels = ', '.join(sorted(self.failures))
        super().__init__(f"Notification delivery failed on: {channels}")

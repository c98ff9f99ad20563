"""
Exceptions raised by the requirements backend.

Only programming errors are raised. Conditions a render can survive
(empty registry, no </head> anchor, missing optional attributes) are
handled as silent pass-through by the injector.
"""


class DeferBackendError(Exception):
    """Base class for every error raised by this package."""


class InvalidConfiguration(DeferBackendError, ValueError):
    """An option value is outside what the backend accepts."""


class ResourceNotFound(DeferBackendError, LookupError):
    """A themed resource could not be found in any active theme."""


class WrongBackendType(DeferBackendError, TypeError):
    """The installed requirements backend is not the deferred one."""

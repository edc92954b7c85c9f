"""Typed errors raised by the sync subsystem."""


class SyncError(Exception):
    """Base class for sync failures."""


class SyncConfigurationError(SyncError):
    """Required credentials or filters are missing from site settings.

    Raised before any network call so the caller can tell an operator
    exactly what to configure.
    """


class SourceFetchError(SyncError):
    """An external source could not be read (transport or HTTP failure)."""


class SourceResponseError(SourceFetchError):
    """An external source answered with a payload of an unexpected shape."""

# pizzeria_voice/errors.py


class RelayError(Exception):
    """Base class for errors raised by the relay."""


class ConfigError(RelayError):
    """Startup configuration is missing or invalid. Fatal for the process."""


class CatalogError(RelayError):
    """The catalog document could not be read or parsed at startup."""


class UpstreamHandshakeError(RelayError):
    """Opening or configuring the realtime session failed. Not retried."""

"""
Error taxonomy shared by the recommendation flow and the live session.
"""

import builtins


class SoilAdvisorError(Exception):
    """Base class for errors surfaced to the user."""


class ConfigurationError(SoilAdvisorError):
    """Required environment configuration is missing."""


class ValidationError(SoilAdvisorError):
    """Form input or image payload rejected before any network call."""


class DeviceUnavailable(SoilAdvisorError):
    """Microphone or speaker could not be opened."""


class ConnectionError(SoilAdvisorError, builtins.ConnectionError):
    """Transport failure while opening or running a live session."""


class ResponseFormatError(SoilAdvisorError):
    """Inference output could not be parsed or violates the result schema."""

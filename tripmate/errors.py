"""
Exception hierarchy for TripMate.

Only failures that must abort an exchange are modelled as exceptions.
Tool failures and guardrail rejections are ordinary values.
"""


class TripMateError(Exception):
    """Base class for all TripMate errors."""


class ConfigurationError(TripMateError):
    """Required configuration (credentials, endpoints) is missing or invalid."""


class ExchangeError(TripMateError):
    """An exchange could not be completed and must not be committed."""


class ModelInvocationError(ExchangeError):
    """The model capability failed (upstream outage, bad response, ...)."""

    def __init__(self, message: str, step_number: int | None = None):
        super().__init__(message)
        self.step_number = step_number


class StreamOrderError(ExchangeError):
    """Orchestrator output violated the part ordering guarantees."""

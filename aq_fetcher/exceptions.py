"""
Exception types raised by the fetcher.
"""


class FetcherError(Exception):
    """Base class for fetcher errors."""


class ConfigurationError(FetcherError):
    """A required configuration value is missing. Fatal for the run."""


class UnsupportedMeasurandError(FetcherError):
    """A row refers to a parameter that has no supported measurand."""


class UnsupportedProviderError(FetcherError):
    """No processor is registered for the requested provider."""


class SourceNotFoundError(FetcherError):
    """The requested source is not among the active source configs."""

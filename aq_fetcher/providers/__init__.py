"""
Registry of provider processors.

Each processor takes a source config and the run config and returns a summary
dict. New providers are added to PROVIDERS explicitly.
"""

import logging
from typing import Any, Callable, Dict

from ..config import FetcherConfig
from ..exceptions import UnsupportedProviderError
from . import generic

Processor = Callable[[Dict[str, Any], FetcherConfig], Dict[str, Any]]

PROVIDERS: Dict[str, Processor] = {
    "generic": generic.processor,
}


def get_processor(provider: str) -> Processor:
    try:
        return PROVIDERS[provider]
    except KeyError:
        raise UnsupportedProviderError(f"{provider} is not a supported provider") from None


def run_processor(source: Dict[str, Any], config: FetcherConfig) -> Dict[str, Any]:
    """Runs the processor registered for the source's adapter and returns its summary."""
    adapter = source.get("adapter") or source.get("provider")
    processor = get_processor(adapter)
    logging.info(f"Running {adapter} processor for source {source.get('name') or source.get('provider')}")
    return processor(source, config)

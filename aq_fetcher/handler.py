"""
This is the main entrypoint that fetches one source per invocation.
"""
# ### IMPORTS ###
import logging
import sys

from .config import FetcherConfig
from .exceptions import ConfigurationError
from .providers import run_processor
from .sources import find_source, load_sources
from .utils.s3_utils import load_meta, save_meta

logging.basicConfig(level=logging.INFO, format="%(asctime)s - [%(levelname)s] - %(message)s")


def _source_name(event: dict | None, config: FetcherConfig) -> str | None:
    """Queue events carry the source name in the first record body."""
    if event and event.get("Records"):
        return event["Records"][0]["body"]
    return config.source


def handler(event: dict | None = None, context=None, config: FetcherConfig | None = None) -> dict:
    """
    Runs the processor for the requested source and records its summary.

    Args:
        event (dict): Optional queue event; its first record body is the source name.
        context: Unused invocation context.
        config (FetcherConfig): Run configuration, read from the environment if omitted.

    Returns:
        dict: The processor summary.
    """
    config = config or FetcherConfig.from_env()
    if config.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    try:
        source_name = _source_name(event, config)
        if not source_name:
            raise ConfigurationError("SOURCE env var or event required")
        config.validate()

        source = find_source(load_sources(config.sources_dir), source_name)

        previous = load_meta(source_name, config)
        if previous:
            logging.info(f"Previous run for {source_name}: {previous.get('summary')}")

        summary = run_processor(source, config)
        save_meta(source_name, {"summary": summary}, config)
        return summary
    except Exception as e:
        logging.error(f"!!! Fetch failed: {e} !!!")
        raise


# =============================================================================
# SCRIPT EXECUTION
# =============================================================================
if __name__ == "__main__":
    # Source name from the command line, otherwise from the SOURCE env var
    cli_config = FetcherConfig.from_env()
    if len(sys.argv) > 1:
        cli_config.source = sys.argv[1]

    if not cli_config.source:
        print("Error: Please provide a source name or set SOURCE.")
        sys.exit(1)

    print(f"--- Manually starting fetch for {cli_config.source} ---")
    print(handler(config=cli_config))

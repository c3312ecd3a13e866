"""
Runtime configuration for the fetcher.

Values are read from the environment (optionally from a .env file) once, at the
entry point, and passed down explicitly to everything that needs them.
"""

# ### IMPORTS ###

# 1.1 Standard Libraries
import os
import logging
from dataclasses import dataclass
from pathlib import Path

# 1.2 Third-party libraries
from dotenv import load_dotenv

# 1.3 Local application modules
from .exceptions import ConfigurationError

# =============================================================================
# CONSTANTS
# =============================================================================
DEFAULT_STACK = "local"
DEFAULT_REGION = "us-east-1"
DEFAULT_TIMEOUT = 30  # seconds, per outbound request
DEFAULT_MAX_CONCURRENCY = 10
PROJECT_ROOT = Path(__file__).parent.parent


def _flag(name: str) -> bool:
    return bool(os.getenv(name))


@dataclass
class FetcherConfig:
    """Settings shared by storage, secrets and file fetching."""

    bucket: str | None = None
    stack: str = DEFAULT_STACK
    secret_stack: str | None = None
    source: str | None = None
    sources_dir: Path = PROJECT_ROOT / "sources"
    region: str = DEFAULT_REGION
    verbose: bool = False
    dry_run: bool = False
    force: bool = False
    request_timeout: int = DEFAULT_TIMEOUT
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY

    @classmethod
    def from_env(cls, env: str | None = None) -> "FetcherConfig":
        """
        Builds a config from environment variables.

        Loads `.env` from the project root first, or `.env.<ENV>` when an
        environment name is given (argument or ENV variable).

        Args:
            env (str): Optional environment name, e.g. 'staging'.

        Returns:
            FetcherConfig: The populated configuration.
        """
        env = env or os.getenv("ENV")
        dotenv_path = PROJECT_ROOT / (f".env.{env}" if env else ".env")
        load_dotenv(dotenv_path=dotenv_path)

        sources_dir = os.getenv("SOURCES_DIR")

        return cls(
            bucket=os.getenv("BUCKET"),
            stack=os.getenv("STACK") or DEFAULT_STACK,
            secret_stack=os.getenv("SECRET_STACK"),
            source=os.getenv("SOURCE"),
            sources_dir=Path(sources_dir) if sources_dir else PROJECT_ROOT / "sources",
            region=os.getenv("AWS_DEFAULT_REGION", DEFAULT_REGION),
            verbose=_flag("VERBOSE"),
            dry_run=_flag("DRYRUN"),
            force=_flag("FORCE"),
            request_timeout=int(os.getenv("REQUEST_TIMEOUT", DEFAULT_TIMEOUT)),
            max_concurrency=int(os.getenv("MAX_CONCURRENCY", DEFAULT_MAX_CONCURRENCY)),
        )

    def validate(self) -> None:
        """Raises ConfigurationError when a value required for a run is missing."""
        if not self.bucket:
            logging.error("BUCKET environment variable not set.")
            raise ConfigurationError("BUCKET env var required")
        if not self.stack:
            raise ConfigurationError("STACK env var required")

import asyncio
import logging
import sys
from typing import Mapping, Optional

from vpm_repository.core.settings import SettingsError, load_settings
from vpm_repository.data.source import SourceError
from vpm_repository.services.builder import build_repository

logger = logging.getLogger(__name__)


def configure_logging(level: str = "INFO") -> None:
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    # httpx logs every request at INFO.
    logging.getLogger("httpx").setLevel(logging.WARNING)


def main(environ: Optional[Mapping[str, str]] = None) -> int:
    """
    Build the repository index once and return the process exit code.
    """
    try:
        settings = load_settings(environ)
    except SettingsError as e:
        configure_logging()
        logger.error(str(e))
        return 1

    configure_logging(settings.log_level)

    try:
        asyncio.run(build_repository(settings))
    except SourceError as e:
        logger.error(str(e))
        return 1
    except KeyboardInterrupt:
        logger.warning("Interrupted")
        return 130
    return 0


if __name__ == "__main__":
    """
    Allow running `python -m vpm_repository.main` from a scheduled job.
    """
    sys.exit(main())

"""Logging setup for the peerclip command line."""
import logging

VERBOSE_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"
QUIET_FORMAT = "%(levelname)s: %(message)s"


def configure_logging(verbose: bool) -> None:
    """Install a stderr handler on the root logger.

    Verbose mode logs DEBUG with timestamps and logger names so that
    server, client and poll activity can be told apart. Otherwise only
    warnings and errors are shown.

    The asyncio logger stays at WARNING in both modes.
    """
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format=VERBOSE_FORMAT if verbose else QUIET_FORMAT,
        handlers=[logging.StreamHandler()],
    )
    logging.getLogger("asyncio").setLevel(logging.WARNING)

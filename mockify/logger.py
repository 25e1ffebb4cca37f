"""
Logger configuration.

Library modules only call ``logging.getLogger(__name__)``; the entry points
(CLI, web app) call ``configure_logging`` once at startup.
"""

import logging
import sys

from rich.logging import RichHandler

# Third-party loggers that are chatty at INFO
_NOISY_LOGGERS = ("httpx", "httpcore", "chromadb", "sentence_transformers", "urllib3")


def configure_logging(level: int = logging.INFO, rich_output: bool = True) -> None:
    """
    Configure root logging.

    Args:
        level: Root log level
        rich_output: Use a rich console handler; otherwise a plain stream
                     handler with ISO timestamps (better for servers/log files)
    """
    root_logger = logging.getLogger()
    for handler in root_logger.handlers[:]:
        root_logger.removeHandler(handler)

    if rich_output:
        handler: logging.Handler = RichHandler(rich_tracebacks=True, show_path=False)
        handler.setFormatter(logging.Formatter("%(message)s", datefmt="[%X]"))
    else:
        handler = logging.StreamHandler(sys.stdout)
        handler.setFormatter(
            logging.Formatter(
                "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                datefmt="%Y-%m-%d %H:%M:%S",
            )
        )

    root_logger.setLevel(level)
    root_logger.addHandler(handler)

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

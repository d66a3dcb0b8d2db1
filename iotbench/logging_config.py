"""
Logging setup for process entry points.

Library modules only create ``logging.getLogger(__name__)`` loggers; handlers
are installed here, once, from Settings.
"""

import logging
from typing import Optional

from iotbench.config import Settings


def configure_logging(settings: Settings, *, force: bool = False) -> None:
    """
    Install console (and optional file) handlers at the configured level.

    Args:
        settings: Application settings (LOG_LEVEL, LOG_FORMAT, LOG_FILE)
        force: Replace handlers installed by an earlier call
    """
    formatter = logging.Formatter(settings.LOG_FORMAT)

    console_handler = logging.StreamHandler()
    console_handler.setFormatter(formatter)
    handlers: list[logging.Handler] = [console_handler]

    file_handler: Optional[logging.Handler] = None
    if settings.LOG_FILE:
        file_handler = logging.FileHandler(settings.LOG_FILE, encoding="utf-8")
        file_handler.setFormatter(formatter)
        handlers.append(file_handler)

    logging.basicConfig(
        level=getattr(logging, str(settings.LOG_LEVEL).upper(), logging.INFO),
        handlers=handlers,
        force=force,
    )

    # Suppress verbose IoTDB client internals (RPC handshakes, retry chatter)
    logging.getLogger("iotdb").setLevel(logging.WARNING)
    logging.getLogger("thrift").setLevel(logging.WARNING)
    logging.getLogger("httpx").setLevel(logging.WARNING)

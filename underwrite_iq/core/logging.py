# This project was developed with assistance from AI tools.
"""Root logger setup.

Every module logs through ``logging.getLogger(__name__)``; this installs the
single stream handler they all share.
"""

import logging
import sys

from .config import settings

_FORMAT = "%(asctime)s %(levelname)s [{app}] %(name)s: %(message)s"


def configure_logging(level: str | None = None) -> None:
    """Install one stream handler on the root logger (idempotent)."""
    root = logging.getLogger()
    root.setLevel((level or settings.LOG_LEVEL).upper())

    for handler in root.handlers:
        if getattr(handler, "_underwrite_iq", False):
            return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(_FORMAT.format(app=settings.APP_NAME)))
    handler._underwrite_iq = True  # type: ignore[attr-defined]
    root.addHandler(handler)

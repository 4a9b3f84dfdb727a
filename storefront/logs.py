"""
Logging setup.

Every module logs through `logging.getLogger(__name__)`; this module only
installs the root handler once at startup.
"""

import logging
import sys

FORMAT = "%(asctime)s %(levelname)-8s %(name)s: %(message)s"


def configure_logging(level: str | int = "INFO") -> None:
    """Install a single stdout handler on the `storefront` logger tree."""
    root = logging.getLogger("storefront")
    root.setLevel(level)
    if any(getattr(h, "_storefront", False) for h in root.handlers):
        return
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(FORMAT))
    handler._storefront = True  # type: ignore[attr-defined]
    root.addHandler(handler)


__all__ = ("configure_logging", "FORMAT")

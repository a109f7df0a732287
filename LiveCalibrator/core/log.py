from __future__ import annotations

import logging
import os
from typing import Optional

LOG_FORMAT = "%(asctime)s %(levelname)-7s %(threadName)s %(name)s: %(message)s"


def setup_logging(level: Optional[str] = None) -> None:
    """Configure root logging once. Level falls back to LIVECALIB_LOG_LEVEL, then INFO."""
    name = (level or os.environ.get("LIVECALIB_LOG_LEVEL", "") or "INFO").strip().upper()
    numeric = getattr(logging, name, None)
    if not isinstance(numeric, int):
        numeric = logging.INFO
    logging.basicConfig(level=numeric, format=LOG_FORMAT)
    logging.getLogger().setLevel(numeric)
    # matplotlib is chatty at debug level
    logging.getLogger("matplotlib").setLevel(max(numeric, logging.WARNING))

"""
Blendrec Logging Configuration
Log setup shared by the pipeline and its callers
"""

import logging
import sys
from typing import Union


def setup_logging(level: Union[int, str] = logging.INFO) -> None:
    """Configure root logging"""
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
    logging.basicConfig(
        level=level,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[
            logging.StreamHandler(sys.stdout)
        ]
    )
    # provider adapters poll frequently; keep httpx request lines out of INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)

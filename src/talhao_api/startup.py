"""Early-boot side effects: dotenv and logging.

This module is imported before any other talhao_api modules so that
``.env`` values are in the environment before settings are first read.
"""

import logging

# -- Load .env -----------------------------------------------------------------
from dotenv import load_dotenv

load_dotenv()

# -- talhao_api / third-party logging setup -------------------------------------
talhao_logger = logging.getLogger("talhao_api")
talhao_logger.setLevel(logging.INFO)
if not talhao_logger.handlers:
    handler = logging.StreamHandler()
    handler.setLevel(logging.INFO)
    handler.setFormatter(logging.Formatter("%(asctime)s %(levelname)s %(name)s - %(message)s"))
    talhao_logger.addHandler(handler)
talhao_logger.propagate = False

# Per-request lines from httpx would duplicate the provider attempt logs.
logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("httpcore").setLevel(logging.WARNING)

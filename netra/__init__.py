"""
NETRA - hands-free visual assistant driven by voice commands.
"""

import logging

logging.getLogger("httpx").setLevel(logging.WARNING)
logging.getLogger("openai").setLevel(logging.WARNING)

__version__ = "0.1.0"

from netra.session import SessionController, SessionToken

__all__ = ["SessionController", "SessionToken", "__version__"]

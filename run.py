"""
LGTM Bot Runner

Starts the webhook server that manages the lgtm label on pull requests.
Host, port, log level and access logging come from the environment
(HOST, PORT, LOG_LEVEL, LOG_REQUESTS).

Use: python run.py
"""

import sys
from pathlib import Path

# Add project root to Python path to enable lgtm_bot imports without installing
project_root = Path(__file__).parent.absolute()
sys.path.insert(0, str(project_root))

import uvicorn

from lgtm_bot.config import get_settings


def main():
    """Serve the LGTM bot with uvicorn."""
    settings = get_settings()

    uvicorn.run(
        "lgtm_bot.main:app",
        host=settings.host,
        port=settings.port,
        reload=False,  # Disable for production
        log_level=settings.log_level.lower(),
        access_log=settings.log_requests
    )


if __name__ == "__main__":
    main()

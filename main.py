"""
Command-line entry point: load configuration, then serve with uvicorn.

    python main.py          # or the `whop-relay` console script

Listens on HOST:PORT (default 0.0.0.0:10000).
"""

import uvicorn

from app import create_app
from config import load_settings


def main() -> None:
    settings = load_settings()
    app = create_app(settings)
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        log_config=None,
        access_log=False,
    )


if __name__ == "__main__":
    main()

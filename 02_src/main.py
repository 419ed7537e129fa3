"""Main entry point for the chat relay."""

import os

import uvicorn
from dotenv import load_dotenv

from relay.config import PROJECT_ROOT


def main():
    """Run the application."""
    load_dotenv(PROJECT_ROOT / ".env")

    # Settings are read at import/construction time, after .env is loaded
    from relay.api import create_fastapi_app
    from relay.logging_config import setup_logging

    setup_logging()

    api_host = os.getenv("API_HOST", "localhost")
    api_port = int(os.getenv("API_PORT", "8000"))

    app = create_fastapi_app()

    uvicorn.run(
        app,
        host=api_host,
        port=api_port,
        log_level="info",
        log_config=None,
    )


if __name__ == "__main__":
    main()

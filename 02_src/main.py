"""Main entry point for D-Buddy."""

import os
from pathlib import Path

import uvicorn
from dotenv import load_dotenv

from dbuddy import Application, BusSource
from dbuddy.api import create_fastapi_app
from dbuddy.logging_config import setup_logging
from sim import SimTransport


def main():
    """Run the application."""
    project_root = Path(__file__).resolve().parent.parent
    load_dotenv(project_root / ".env")
    setup_logging()

    # Get configuration from environment
    api_host = os.getenv("API_HOST", "localhost")
    api_port = int(os.getenv("API_PORT", "8000"))

    # No real bus transport is wired in; feed both sources from the simulator
    transports = []
    if os.getenv("DBUDDY_SIM", "1") == "1":
        rate = float(os.getenv("DBUDDY_SIM_RATE", "20"))
        transports = [SimTransport(source, rate=rate) for source in BusSource]

    application = Application(transports=transports)
    app = create_fastapi_app(application)

    # Run with uvicorn
    uvicorn.run(
        app,
        host=api_host,
        port=api_port,
        log_level="info",
    )


if __name__ == "__main__":
    main()

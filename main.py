"""
Main entrypoint: FastAPI session monitor server.

The camera is not opened at startup; a client starts and stops the capture
session through POST /session/start and POST /session/stop. On SIGINT/SIGTERM
uvicorn runs the app lifespan, which stops any running session and releases
the device.

Env: GEMINI_API_KEY, VOTEGUARD_ANALYSIS_INTERVAL_MS, API_HOST, API_PORT, LOG_LEVEL, etc.

Headless (no API): python -m backend_voteguard.agent_worker.runtime
"""

# Configure structured JSON logging before other imports that may log
from backend_voteguard.voteguard_logging import get_logger

logger = get_logger("main")


def main() -> None:
    """Run the FastAPI server in the main thread."""
    from backend_voteguard.config import get_settings

    settings = get_settings()
    if not settings.classifier.api_key:
        logger.warning(
            "main_config_warning",
            message="GEMINI_API_KEY not set: sessions will start but every cycle is skipped",
        )

    from backend_voteguard.api_server.server import app
    import uvicorn

    logger.info("main_server_starting", host=settings.api_host, port=settings.api_port)
    uvicorn.run(app, host=settings.api_host, port=settings.api_port, log_level=settings.log_level.lower())


if __name__ == "__main__":
    main()

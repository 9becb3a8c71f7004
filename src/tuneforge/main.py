"""TuneForge entry point."""

import uvicorn

from tuneforge.config import get_settings


def main():
    """Run the TuneForge API server."""
    settings = get_settings()
    uvicorn.run(
        "tuneforge.api.app:app",
        host=settings.host,
        port=settings.port,
        reload=settings.debug,
        log_level="debug" if settings.debug else "info",
    )


if __name__ == "__main__":
    main()

"""Run the service with uvicorn: ``python -m moodboard_realtime``."""

import uvicorn

from .config import settings


def main() -> None:
    """Start a single uvicorn worker on the configured host and port."""
    uvicorn.run(
        "moodboard_realtime.main:app",
        host=settings.host,
        port=settings.port,
        ws_max_size=settings.ws_max_message_size,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

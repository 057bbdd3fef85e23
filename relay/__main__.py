"""
Run the relay HTTP server.

    python -m relay
"""
import uvicorn

from relay.config import settings


def main() -> None:
    uvicorn.run(
        "relay.api.main:app",
        host=settings.host,
        port=settings.port,
        log_level=settings.log_level.lower(),
    )


if __name__ == "__main__":
    main()

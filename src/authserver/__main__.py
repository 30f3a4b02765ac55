"""authserver entrypoint.

Run with:
  python -m authserver
"""

import uvicorn

from authserver.config import load_settings


def main() -> None:
    settings = load_settings()
    uvicorn.run(
        "authserver.app:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=settings.reload,
    )


if __name__ == "__main__":
    main()

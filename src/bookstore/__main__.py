"""Bookstore API entrypoint.

Run with:
  python -m bookstore
"""

import os
import uvicorn

from bookstore.config import configure_logging, load_settings


def main() -> None:
    settings = load_settings()
    configure_logging(settings.log_level)
    host = os.getenv("BOOKSTORE_HOST", "0.0.0.0")
    port = int(os.getenv("BOOKSTORE_PORT", "8000"))
    reload = os.getenv("BOOKSTORE_RELOAD", "false").lower() in {"1", "true", "yes", "y"}
    uvicorn.run("bookstore.app:create_app", factory=True, host=host, port=port, reload=reload)

if __name__ == "__main__":
    main()

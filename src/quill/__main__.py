from __future__ import annotations

import uvicorn

from .config import get_config
from .logging_setup import configure_logging


def main() -> None:
    configure_logging()
    server = get_config().server
    uvicorn.run(
        "quill.app:app",
        host=server.host,
        port=server.port,
        reload=server.reload,
        log_level="info",
    )


if __name__ == "__main__":
    main()

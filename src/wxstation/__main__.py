"""Weather Station entrypoint.

Run with:
  python -m wxstation
"""

import logging
import os

import uvicorn


def main() -> None:
    logging.basicConfig(
        level=os.getenv("WXS_LOG_LEVEL", "INFO").upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    host = os.getenv("WXS_HOST", "0.0.0.0")
    port = int(os.getenv("WXS_PORT", "8000"))
    reload = os.getenv("WXS_RELOAD", "false").lower() in {"1", "true", "yes", "y"}
    uvicorn.run(
        "wxstation.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        ssl_certfile=os.getenv("WXS_SSL_CERTFILE") or None,
        ssl_keyfile=os.getenv("WXS_SSL_KEYFILE") or None,
    )

if __name__ == "__main__":
    main()

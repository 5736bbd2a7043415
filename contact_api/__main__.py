"""Run the contact API with uvicorn.

Usage:
    python -m contact_api
"""

import logging

import uvicorn

from contact_api.config import get_settings
from contact_api.main import create_app
from contact_api.middleware import RequestIDLogFilter


def configure_logging(debug: bool = False) -> None:
    logging.basicConfig(
        level=logging.DEBUG if debug else logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s [%(request_id)s]: %(message)s",
    )
    for handler in logging.getLogger().handlers:
        handler.addFilter(RequestIDLogFilter())


def main() -> None:
    settings = get_settings()
    configure_logging(settings.debug)
    app = create_app(settings)
    uvicorn.run(
        app,
        host="0.0.0.0",
        port=settings.port,
        proxy_headers=settings.trust_proxy,
        log_config=None,
    )


if __name__ == "__main__":
    main()

"""
Run the API with uvicorn: `python -m storefront` or the `storefront` script.
"""

import os

import uvicorn

from storefront.config import Settings
from storefront.http import create_app
from storefront.logs import configure_logging


def main() -> None:
    settings = Settings.from_env()
    configure_logging(settings.log_level)
    uvicorn.run(
        create_app(settings),
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "8000")),
        log_level=settings.log_level.lower(),
        proxy_headers=settings.trust_proxy,
    )


if __name__ == "__main__":
    main()

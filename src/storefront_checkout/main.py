from __future__ import annotations

import uvicorn

from storefront_checkout.config import Settings


def main() -> None:
    settings = Settings.from_env()
    uvicorn.run(
        "storefront_checkout.bootstrap:create_asgi_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        reload=False,
        log_config=None,
    )


if __name__ == "__main__":
    main()

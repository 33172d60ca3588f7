from __future__ import annotations

from storefront_checkout.bootstrap import create_asgi_app

app = create_asgi_app()

"""Storefront HTTP API."""

import structlog
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from storefront.api import cart, catalogue, chat, checkout, orders, shipping, wallet, wishlist
from storefront.api.errors import register_error_handlers
from storefront.domain import storefront
from storefront.utils.logging import bind_request_context, clear_request_context, request_context

logger = structlog.get_logger(__name__)


def create_app() -> FastAPI:
    """Build the FastAPI app. The domain must already be initialized."""
    app = FastAPI(
        title="Lelekart Storefront API",
        description="Cart, checkout, coins wallet and carrier dispatch",
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the storefront domain context and bind request details to the log context."""
        context = request_context(request.headers)
        bind_request_context(method=request.method, path=request.url.path, **context)
        try:
            with storefront.domain_context():
                response = await call_next(request)
            response.headers["X-Request-Id"] = context["request_id"]
            return response
        finally:
            clear_request_context()

    register_error_handlers(app)

    for module in (catalogue, cart, checkout, orders, wallet, shipping, wishlist, chat):
        app.include_router(module.router)

    @app.get("/health")
    async def health():
        return JSONResponse(content={"status": "ok", "domain": storefront.name})

    return app

"""Lelekart storefront FastAPI application.

Processes commands synchronously via HTTP inside the storefront domain
context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV controls which config overlay is applied:
#   - unset/"test" → event_processing = "sync"  (projectors fire in UoW)
#   - "production" → event_processing = "async" (projectors fire via Engine)
from storefront.api import create_app
from storefront.domain import storefront
from storefront.utils.logging import configure_logging

configure_logging()
storefront.init()

app = create_app()

"""
PropDesk Back-Office API
========================
Operator back-office for a property-management service.

Every screen reads from and writes to the remote property-management API:
- **Dashboard**: totals, occupancy, rent collected/outstanding, urgent maintenance
- **Lists**: properties, tenants, maintenance requests, leases with search,
  filters, sort and pagination
- **Forms**: create / edit / delete with local validation and derived fields
- **Exports**: CSV and PDF downloads
"""
import logging
from datetime import datetime

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from propdesk.api.auth import router as auth_router
from propdesk.api.routes import router
from propdesk.config import get_settings

settings = get_settings()

logging.basicConfig(
    level=getattr(logging, settings.log_level.upper(), logging.INFO),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(
    title="PropDesk Back-Office API",
    description="""
    Back-office screens for properties, tenants, leases and maintenance.

    ## Notifications
    Views carry the success / error notifications raised while they were
    built. A failed load keeps the last good data.

    ## Session
    Log in through **/auth/login**. Any 401 from the remote API ends the
    session and the response points back to the login screen.
    """,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc"
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        settings.frontend_url,
    ],
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["*"],
)


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "name": "PropDesk Back-Office API",
        "version": "1.0.0",
        "docs": "/docs",
        "status": "running",
        "api": settings.api_base_url,
    }


@app.get("/health")
async def health():
    return {"status": "healthy", "timestamp": datetime.now().isoformat()}


# Registered last: the list screens are served from /{entity}
app.include_router(auth_router)
app.include_router(router, tags=["Back Office"])

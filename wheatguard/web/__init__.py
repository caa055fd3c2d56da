from __future__ import annotations

from fastapi import FastAPI

from .routes import router as dashboard_router


def register_dashboards(app: FastAPI) -> None:
    """Attach the farmer and researcher dashboard routes to the application."""
    app.include_router(dashboard_router)


__all__ = ["register_dashboards"]

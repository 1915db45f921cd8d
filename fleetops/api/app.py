"""
FastAPI application factory.

* Registers routes for trips, merges, vehicles, drivers, claims and admin.
* Renders every ``AppException`` as ``{error_code, message, details}``.
* Applies rate-limiting middleware.
* Swagger / OpenAPI UI available at ``/docs``.
"""

import logging

from fastapi import FastAPI
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from fleetops.api.middleware import limiter
from fleetops.api.routes import admin, claims, drivers, merges, trips, vehicles
from fleetops.config import settings
from fleetops.errors import AppException, app_exception_handler

logging.basicConfig(level=settings.log_level)


def create_app() -> FastAPI:
    app = FastAPI(
        title="Fleet Operations API",
        description=(
            "Books, approves, dispatches and closes fleet trips.  Tracks "
            "vehicle availability, driver assignment, trip merging, "
            "breakdown recovery and fine claims."
        ),
        version="1.0.0",
    )

    # Rate limiter
    app.state.limiter = limiter
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

    # Domain errors
    app.add_exception_handler(AppException, app_exception_handler)

    # Routers
    app.include_router(trips.router, prefix="/api/v1")
    app.include_router(merges.router, prefix="/api/v1")
    app.include_router(vehicles.router, prefix="/api/v1")
    app.include_router(drivers.router, prefix="/api/v1")
    app.include_router(claims.router, prefix="/api/v1")
    app.include_router(admin.router, prefix="/api/v1")

    return app

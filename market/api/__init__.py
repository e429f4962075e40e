# market/api/__init__.py
from fastapi import FastAPI

from market.api.errors import register_error_handlers
from market.api.routers import carts, health, orders
from market.utils.settings import APP_VERSION


def create_app(lifespan=None) -> FastAPI:
    app = FastAPI(
        title="Market Orders Service",
        version=APP_VERSION,
        lifespan=lifespan,
    )

    register_error_handlers(app)

    app.include_router(health.router)
    app.include_router(carts.router)
    app.include_router(orders.router)
    app.include_router(orders.admin_router)

    return app

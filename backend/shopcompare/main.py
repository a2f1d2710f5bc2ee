import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Callable, Optional

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from .config import Settings, get_settings
from .errors import ServiceError
from .providers.deals import DealSource
from .routers import auth, deals, orders, products, search_history, users, wishlist
from .scheduler import create_scheduler
from .services.freshness import now_utc
from .services.orders import StatusChecker
from .services.product_search import ShoppingProvider
from .services.registry import build_services
from .store.base import DocumentStore

logger = logging.getLogger(__name__)

HTTP_ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: "VALIDATION_ERROR",
    status.HTTP_401_UNAUTHORIZED: "AUTH_ERROR",
    status.HTTP_403_FORBIDDEN: "AUTH_ERROR",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_405_METHOD_NOT_ALLOWED: "METHOD_NOT_ALLOWED",
}


def _error(status_code: int, code: str, message: str, details=None) -> JSONResponse:
    body = {"code": code, "message": message}
    if details is not None:
        body["details"] = details
    return JSONResponse(status_code=status_code, content=jsonable_encoder({"error": body}))


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ServiceError)
    async def service_error(request: Request, exc: ServiceError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_body()))

    @app.exception_handler(RequestValidationError)
    async def request_validation_error(request: Request, exc: RequestValidationError):
        details = [
            {"loc": list(e.get("loc", ())), "msg": e.get("msg"), "type": e.get("type")}
            for e in exc.errors()
        ]
        return _error(status.HTTP_400_BAD_REQUEST, "VALIDATION_ERROR", "Invalid request", details)

    @app.exception_handler(StarletteHTTPException)
    async def http_error(request: Request, exc: StarletteHTTPException):
        code = HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
        return _error(exc.status_code, code, str(exc.detail))

    @app.exception_handler(Exception)
    async def unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return _error(status.HTTP_500_INTERNAL_SERVER_ERROR, "INTERNAL_ERROR", "Internal server error")


def create_app(
    settings: Optional[Settings] = None,
    store: Optional[DocumentStore] = None,
    provider: Optional[ShoppingProvider] = None,
    deal_source: Optional[DealSource] = None,
    status_checker: Optional[StatusChecker] = None,
    clock: Callable[[], datetime] = now_utc,
) -> FastAPI:
    settings = settings or get_settings()
    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )
    services = build_services(
        settings,
        store=store,
        provider=provider,
        deal_source=deal_source,
        status_checker=status_checker,
        clock=clock,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler = None
        if settings.scheduler_enabled and settings.deals_prune_interval_minutes > 0:
            scheduler = create_scheduler(services.deals, settings.deals_prune_interval_minutes)
            scheduler.start()
            logger.info("Daily-deal pruning every %d min", settings.deals_prune_interval_minutes)
        try:
            yield
        finally:
            if scheduler is not None:
                scheduler.shutdown(wait=False)

    app = FastAPI(title="ShopCompare Backend", version="0.1.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.services = services
    register_error_handlers(app)

    @app.get("/health")
    def healthcheck():
        return {"status": "ok", "env": settings.env}

    app.include_router(auth.router, prefix="/api/auth", tags=["auth"])
    app.include_router(users.router, prefix="/api/users", tags=["users"])
    app.include_router(products.router, prefix="/api/products", tags=["products"])
    app.include_router(wishlist.router, prefix="/api/wishlist", tags=["wishlist"])
    app.include_router(orders.router, prefix="/api/orders", tags=["orders"])
    app.include_router(search_history.router, prefix="/api/search", tags=["search-history"])
    app.include_router(deals.router, prefix="/api/deals", tags=["deals"])
    return app


app = create_app()

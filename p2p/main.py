from fastapi import FastAPI, Request, Response, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import HTTPException, RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional
import structlog

from p2p.config import Settings, get_settings
from p2p.errors import DomainError, StorageError
from p2p.logging_config import setup_logging
from p2p.middleware.correlation import CorrelationIdMiddleware
from p2p.services.notification_service import NotificationSink, build_notification_sink
from p2p.services.store import EntityStore, build_store
from p2p.services.workflow_service import WorkflowEngine

logger = structlog.get_logger()


def create_app(
    settings: Optional[Settings] = None,
    *,
    store: Optional[EntityStore] = None,
    notifier: Optional[NotificationSink] = None,
) -> FastAPI:
    """Build the app; ``store`` and ``notifier`` default to what settings select."""
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings)
        logger.info(
            "starting_p2p",
            env=settings.ENVIRONMENT,
            store_backend=settings.STORE_BACKEND,
            approval_limit_policy=settings.APPROVAL_LIMIT_POLICY,
        )
        app.state.store = store or build_store(settings)
        app.state.notifier = notifier or build_notification_sink(settings)
        app.state.engine = WorkflowEngine(app.state.store, app.state.notifier, settings=settings)
        yield
        await app.state.notifier.close()
        await app.state.store.close()
        logger.info("stopped_p2p")

    app = FastAPI(
        title=settings.APP_NAME,
        version=settings.APP_VERSION,
        docs_url="/docs" if settings.DEBUG else None,
        redoc_url="/redoc" if settings.DEBUG else None,
        lifespan=lifespan,
    )

    # All errors leave as {"error": {"code": "...", "message": "...", ...}}

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError) -> JSONResponse:
        logger.info("domain_error", code=exc.code, message=exc.message, entity_id=exc.entity_id)
        return JSONResponse(status_code=exc.status_code, content={"error": exc.to_dict()})

    @app.exception_handler(StorageError)
    async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
        logger.error("storage_unavailable", error=str(exc))
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": {"code": exc.code, "message": "Storage is temporarily unavailable"}},
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
        detail = exc.detail
        if isinstance(detail, str):
            detail = {"error": {"code": "HTTP_ERROR", "message": detail}}
        elif isinstance(detail, dict) and "error" not in detail:
            detail = {"error": detail}
        return JSONResponse(status_code=exc.status_code, content=detail, headers=exc.headers)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        return JSONResponse(
            status_code=422,
            content={
                "error": {
                    "code": "VALIDATION_ERROR",
                    "message": "Request validation failed",
                    "details": jsonable_encoder(exc.errors()),
                }
            },
        )

    app.add_middleware(CorrelationIdMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "X-Requested-With", "X-Request-ID"],
    )

    @app.get("/health", tags=["System"])
    async def health(request: Request, response: Response):
        ok = await request.app.state.store.ping()
        if not ok:
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
        return {
            "status": "healthy" if ok else "unhealthy",
            "version": settings.APP_VERSION,
            "checks": {"store": "ok" if ok else "error"},
        }

    from p2p.routes.purchase_requisitions import router as pr_router
    from p2p.routes.purchase_orders import router as po_router
    from p2p.routes.goods_receipts import router as receipts_router
    from p2p.routes.vendors import router as vendors_router
    from p2p.routes.approvers import router as approvers_router
    from p2p.routes.cost_centers import router as cost_centers_router
    from p2p.routes.reports import router as reports_router

    app.include_router(pr_router, prefix="/api/v1/purchase-requisitions", tags=["Purchase Requisitions"])
    app.include_router(po_router, prefix="/api/v1/purchase-orders", tags=["Purchase Orders"])
    app.include_router(receipts_router, prefix="/api/v1/goods-receipts", tags=["Goods Receipts"])
    app.include_router(vendors_router, prefix="/api/v1/vendors", tags=["Vendors"])
    app.include_router(approvers_router, prefix="/api/v1/cost-center-approvers", tags=["Approvers"])
    app.include_router(cost_centers_router, prefix="/api/v1/cost-centers", tags=["Cost Centers"])
    app.include_router(reports_router, prefix="/api/v1/reports", tags=["Reports"])

    return app


app = create_app()

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import logging
from typing import Optional

from homelead.api import admin, customer, health
from homelead.core import config
from homelead.middleware.request_logger import RequestLoggerMiddleware
from homelead.middleware.security_headers import SecurityHeadersMiddleware
from homelead.services.errors import HomeleadError
from homelead.services.json_store import Stores
from homelead.services.llm_service import LLMClient, get_llm_client
from homelead.services.notifier import Notifier, get_notifier

# ---- Logging config ---------------------------------------------------------
logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(asctime)s %(levelname)s %(name)s:%(lineno)d - %(message)s",
)
logger = logging.getLogger("homelead.main")


def create_app(
    data_dir: Optional[str] = None,
    notifier: Optional[Notifier] = None,
    llm: Optional[LLMClient] = None,
    admin_pass: Optional[str] = None,
) -> FastAPI:
    app = FastAPI(title="HomeLead Backend")

    # ---- State --------------------------------------------------------------
    app.state.stores = Stores(data_dir or config.DATA_DIR, admin_pass if admin_pass is not None else config.ADMIN_PASS)
    app.state.notifier = notifier or get_notifier()
    app.state.llm = llm or get_llm_client()

    # ---- Middleware ---------------------------------------------------------
    app.add_middleware(SecurityHeadersMiddleware, hsts=config.IS_PRODUCTION)
    app.add_middleware(RequestLoggerMiddleware)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=config.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # ---- Errors -------------------------------------------------------------
    @app.exception_handler(HomeleadError)
    async def _homelead_error(request: Request, exc: HomeleadError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.detail)
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})

    # ---- Routers ------------------------------------------------------------
    app.include_router(health.router,   prefix="/api",       tags=["Health"])
    app.include_router(customer.router, prefix="/api",       tags=["Customer"])
    app.include_router(admin.router,    prefix="/api/admin", tags=["Admin"])

    # ---- Startup ------------------------------------------------------------
    @app.on_event("startup")
    def _startup() -> None:
        config.check_startup(config.IS_PRODUCTION, app.state.stores.settings.admin_password, app.state.llm.api_key)
        logger.info(
            "Startup completed. env=%s data_dir=%s customers=%d",
            config.ENVIRONMENT, app.state.stores.data_dir, app.state.stores.customers.stats()["customers"],
        )

    return app


logger.info("Starting HomeLead Backend with LOG_LEVEL=%s", config.LOG_LEVEL)
app = create_app()

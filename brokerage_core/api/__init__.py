"""
Brokerage Ledger API Application Factory
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from .contracts import router as contracts_router
from .jobs import router as jobs_router
from .balances import router as balances_router
from .profiles import router as profiles_router
from .admin import router as admin_router
from ..exceptions import BrokerageError
from ..config import get_config
from ..logging_config import setup_logging, get_logger, log_action


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    app = FastAPI(
        title="Brokerage Ledger API",
        description="Job payments, deposits and earnings reports between clients and contractors",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    logger = get_logger("brokerage.api")

    @app.exception_handler(BrokerageError)
    async def brokerage_error_handler(request: Request, exc: BrokerageError):
        log_action(
            logger, "info", f"{request.method} {request.url.path} failed: {exc.error_code}",
            action="request_failed", resource=request.url.path,
            extra={"status_code": exc.status_code}
        )
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    app.include_router(contracts_router, prefix="/contracts", tags=["Contracts"])
    app.include_router(jobs_router, prefix="/jobs", tags=["Jobs"])
    app.include_router(balances_router, prefix="/balances", tags=["Balances"])
    app.include_router(profiles_router, prefix="/profiles", tags=["Profiles"])
    app.include_router(admin_router, prefix="/admin", tags=["Admin"])

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "brokerage_ledger_api",
            "version": "1.0.0"
        }

    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "Brokerage Ledger API",
            "version": "1.0.0",
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "contracts": "/contracts",
                "jobs": "/jobs",
                "balances": "/balances",
                "profiles": "/profiles",
                "admin": "/admin",
            }
        }

    return app


app = create_app()


def run_server(host: str = None, port: int = None, debug: bool = False):
    """Configure logging and serve the API with uvicorn"""
    config = get_config()
    setup_logging(
        level="DEBUG" if debug else config.log_level,
        log_format=config.log_format,
        log_file=config.log_file
    )
    uvicorn.run(
        app,
        host=host or config.api_host,
        port=port or config.api_port,
        log_level="debug" if debug else "info"
    )

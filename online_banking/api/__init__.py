"""
Bankline API Application Factory
"""

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import uvicorn

from ..auth import AuthenticationError, AccountDisabledError
from ..config import get_config
from ..logging_config import log_action, setup_logging
from ..passwords import InvalidPinError
from ..price_feed import PriceUnavailableError
from .auth import client_ip, get_banking_system, logger

from .authentication import router as auth_router
from .profile import router as profile_router
from .notifications import router as notifications_router
from .transactions import router as transactions_router
from .deposits import router as deposits_router
from .withdrawals import router as withdrawals_router
from .transfers import router as transfers_router
from .cards import router as cards_router
from .loans import router as loans_router
from .crypto import router as crypto_router
from .kyc import router as kyc_router
from .plans import router as plans_router
from .memberships import router as memberships_router
from .signals import router as signals_router
from .support import router as support_router
from .public import router as public_router
from .admin import router as admin_router
from .admin_finance import router as admin_finance_router
from .admin_content import router as admin_content_router
from .admin_services import router as admin_services_router


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"detail": message})


def register_error_handlers(app: FastAPI) -> None:
    """Map service exceptions to HTTP responses"""

    @app.exception_handler(ValueError)
    async def value_error_handler(request: Request, exc: ValueError):
        message = str(exc)
        if message.lower().endswith("not found"):
            return _error(404, message)
        return _error(400, message)

    @app.exception_handler(PermissionError)
    async def permission_error_handler(request: Request, exc: PermissionError):
        return _error(403, str(exc) or "Forbidden")

    @app.exception_handler(InvalidPinError)
    async def invalid_pin_handler(request: Request, exc: InvalidPinError):
        return _error(401, str(exc))

    @app.exception_handler(AuthenticationError)
    async def authentication_error_handler(request: Request, exc: AuthenticationError):
        return _error(401, str(exc))

    @app.exception_handler(AccountDisabledError)
    async def account_disabled_handler(request: Request, exc: AccountDisabledError):
        return _error(403, str(exc))

    @app.exception_handler(PriceUnavailableError)
    async def price_unavailable_handler(request: Request, exc: PriceUnavailableError):
        return _error(503, str(exc))


def create_app() -> FastAPI:
    """Create and configure the FastAPI application"""
    config = get_config()
    setup_logging(config.log_level, "bankline", config.log_format, config.log_file)

    app = FastAPI(
        title="Bankline API",
        description="Online banking platform with an administrative back office",
        version="1.0.0",
        docs_url="/docs",
        redoc_url="/redoc"
    )

    # Add CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=[o.strip() for o in config.cors_origins.split(",")],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def block_listed_ips(request: Request, call_next):
        ip_address = client_ip(request)
        if ip_address and get_banking_system().ip_blocks.is_blocked(ip_address):
            log_action(logger, "warning", f"Rejected request from blocked IP {ip_address}",
                       action="blocked_ip_request", resource=request.url.path)
            return _error(403, "Access denied")
        return await call_next(request)

    register_error_handlers(app)

    # Include routers
    app.include_router(auth_router, prefix="/auth", tags=["Auth"])
    app.include_router(notifications_router, prefix="/user/notifications", tags=["Notifications"])
    app.include_router(transactions_router, prefix="/user/transactions", tags=["Transactions"])
    app.include_router(deposits_router, prefix="/user/deposits", tags=["Deposits"])
    app.include_router(withdrawals_router, prefix="/user/withdrawals", tags=["Withdrawals"])
    app.include_router(transfers_router, prefix="/user/transfers", tags=["Transfers"])
    app.include_router(cards_router, prefix="/user/cards", tags=["Cards"])
    app.include_router(loans_router, prefix="/user/loans", tags=["Loans"])
    app.include_router(crypto_router, prefix="/user/crypto", tags=["Crypto"])
    app.include_router(kyc_router, prefix="/user/kyc", tags=["KYC"])
    app.include_router(plans_router, prefix="/user/plans", tags=["Plans"])
    app.include_router(memberships_router, prefix="/user/memberships", tags=["Memberships"])
    app.include_router(signals_router, prefix="/user/signals", tags=["Signals"])
    app.include_router(support_router, prefix="/user/support", tags=["Support"])
    app.include_router(profile_router, prefix="/user", tags=["Profile"])
    app.include_router(public_router, prefix="/public", tags=["Public"])
    app.include_router(admin_router, prefix="/admin", tags=["Admin"])
    app.include_router(admin_finance_router, prefix="/admin", tags=["Admin Finance"])
    app.include_router(admin_content_router, prefix="/admin", tags=["Admin Content"])
    app.include_router(admin_services_router, prefix="/admin", tags=["Admin Services"])

    # Health check endpoint
    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "service": "bankline_api",
            "version": "1.0.0"
        }

    # Root endpoint
    @app.get("/")
    async def get_api_info():
        """Get API information"""
        return {
            "name": "Bankline API",
            "version": "1.0.0",
            "description": "Online banking platform",
            "endpoints": {
                "docs": "/docs",
                "health": "/health",
                "auth": "/auth",
                "user": "/user",
                "public": "/public",
                "admin": "/admin",
            }
        }

    return app


app = create_app()


def run_server(host: str = None, port: int = None, debug: bool = False):
    """Run the FastAPI server"""
    config = get_config()
    uvicorn.run(
        "online_banking.api:app",
        host=host or config.api_host,
        port=port or config.api_port,
        reload=debug,
        log_level=config.log_level.lower()
    )

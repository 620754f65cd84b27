from typing import Optional
from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from slowapi.errors import RateLimitExceeded
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from timing_asgi import TimingMiddleware, TimingClient  # type: ignore
from timing_asgi.integrations import StarletteScopeToName  # type: ignore

from lattice import __version__
from lattice.core import config
from lattice.core.database.engine import init_db
from lattice.core.errors import LatticeError
from lattice.core.lattice import LatticeCore
from lattice.core.limiter import limiter
from lattice.core.route_policy import DEFAULT_ROUTE_POLICY, RoutePermissionPolicy
from lattice.features.audit.routes import router as audit_router
from lattice.features.contexts.routes import router as context_router
from lattice.features.permissions.routes import router as permission_router
from lattice.features.policies.routes import router as policy_router
from lattice.features.roles.routes import router as role_router
from lattice.utils import get_logger


log = get_logger(__name__)


class PrintTimings(TimingClient):
    def timing(self, metric_name, timing, tags):
        log.debug(dict(route=metric_name.removeprefix("main.lattice.features."), timing=timing, tags=tags))


async def validation_exception_handler(_request: Request, exc: RequestValidationError):
    errors = dict()
    for error in exc.errors():
        if "loc" not in error or "msg" not in error:
            continue
        key = error["loc"][-1]
        if key == "__root__":
            key = "root"
        errors[key] = error["msg"]
    log.info("Request validation error %s", errors)
    return JSONResponse(status_code=400, content=jsonable_encoder(errors))


async def lattice_exception_handler(_request: Request, exc: LatticeError):
    if exc.status_code >= 500:
        log.error("Request failed: %s %s", exc.code, exc.message)
    else:
        log.info("Request rejected: %s %s", exc.code, exc.message)
    return JSONResponse(status_code=exc.status_code, content=jsonable_encoder(exc.to_dict()))


def rate_limit_exceeded_handler(_request: Request, _exc: RateLimitExceeded) -> Response:
    return JSONResponse({"error": "You are going too fast"}, status_code=429)


def create_app(
    core: Optional[LatticeCore] = None,
    init_database: bool = True,
    route_policy: Optional[RoutePermissionPolicy] = None
) -> FastAPI:
    """
    Build the management API around a LatticeCore.

    Args:
        core: Engine to serve; a default one over DATABASE_URL is built when omitted
        init_database: Create tables on startup
        route_policy: Permission keys required by the management routes; defaults when omitted
    """
    log.info("Initializing server")
    core = core or LatticeCore()

    app = FastAPI(
        title="Lattice",
        description="RBAC + ABAC authorization engine",
        version=__version__,
        docs_url="/docs" if config.ENABLE_DOCS else None,
        redoc_url="/redoc" if config.ENABLE_DOCS else None,
        openapi_url="/openapi.json" if config.ENABLE_DOCS else None
    )
    app.state.lattice = core
    app.state.route_policy = route_policy or DEFAULT_ROUTE_POLICY
    app.state.limiter = limiter

    app.add_middleware(TimingMiddleware, client=PrintTimings(), metric_namer=StarletteScopeToName("main", app))

    if config.ENABLE_DOCS:
        log.warning("Docs enabled")
    if config.ALLOW_ORIGIN:
        log.warning("Setting allow origin to %s", config.ALLOW_ORIGIN)
        origins = [config.ALLOW_ORIGIN]
        app.add_middleware(
            CORSMiddleware,
            allow_origins=origins,
            allow_credentials=True,
            allow_methods=["*"],
            allow_headers=["*"],
        )

    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(LatticeError, lattice_exception_handler)
    app.add_exception_handler(RateLimitExceeded, rate_limit_exceeded_handler)

    @app.on_event("startup")
    async def startup():
        """Initialize database and permission registry on application startup."""
        if init_database:
            log.info("Initializing database...")
            await init_db()
            log.info("Database initialized successfully")
        await core.startup()

    @app.get("/")
    async def root():
        """Root endpoint - API health check."""
        return {
            "message": "Lattice API",
            "version": __version__,
            "status": "online",
            "docs": "/docs" if config.ENABLE_DOCS else None,
            "authentication": {
                "info": "Every management route reads the acting user from the x-user-id header",
                "context": "Caller context comes from x-context-id / x-context-type or contextId / contextType",
            },
            "features": {
                "permissions": "Permission catalog, direct grants, effective permissions and access checks",
                "roles": "Context-typed roles with scoped permission grants and user assignments",
                "contexts": "Tenants, teams and other scoping boundaries",
                "policies": "ABAC policies with CEL conditions and deny override",
                "audit": "Audit trail of access checks and management operations",
            }
        }

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    prefix = config.API_PREFIX
    app.include_router(permission_router, prefix=f"{prefix}/permissions", tags=["permissions"])
    app.include_router(role_router, prefix=f"{prefix}/roles", tags=["roles"])
    app.include_router(context_router, prefix=f"{prefix}/contexts", tags=["contexts"])
    app.include_router(policy_router, prefix=f"{prefix}/policies", tags=["policies"])
    app.include_router(audit_router, prefix=f"{prefix}/audit-logs", tags=["audit"])

    return app


app = create_app()

from fastapi import FastAPI
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from slowapi.errors import RateLimitExceeded
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from timing_asgi import TimingMiddleware, TimingClient  # type: ignore
from timing_asgi.integrations import StarletteScopeToName  # type: ignore

from app.core import config
from app.core.database.engine import init_db
from app.core.exceptions import DirectoryError
from app.core.rate_limit import limiter
from app.features.users.routes import router as user_router
from app.features.departments.routes import router as department_router
from app.features.positions.routes import router as position_router
from app.features.teams.routes import router as team_router
from app.features.assignments.routes import router as assignment_router
from app.features.permissions.routes import router as permission_router
from app.features.audit.routes import router as audit_router
from app.utils import get_logger


log = get_logger(__name__)
log.info("Initializing server")
app = FastAPI(
    title="Organization Directory Backend",
    description="Departments, positions, teams, user assignments and effective permissions",
    version="0.1.0",
    docs_url="/docs" if config.ENABLE_DOCS else None,
    redoc_url="/redoc" if config.ENABLE_DOCS else None,
    openapi_url="/openapi.json" if config.ENABLE_DOCS else None
)
app.state.limiter = limiter


class PrintTimings(TimingClient):
    def timing(self, metric_name, timing, tags):
        log.debug(dict(route=metric_name.removeprefix("main.app.features."), timing=timing, tags=tags))


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


@app.exception_handler(RequestValidationError)
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


@app.exception_handler(DirectoryError)
async def directory_error_handler(_request: Request, exc: DirectoryError):
    log.info("Rejected by %s rule: %s", exc.kind, exc.message)
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict())


@app.exception_handler(RateLimitExceeded)
def rate_limit_exceeded_handler(_request: Request, _exc: RateLimitExceeded) -> Response:
    return JSONResponse({"error": "You are going too fast"}, status_code=429)


@app.on_event("startup")
async def startup():
    """Initialize database on application startup."""
    log.info("Initializing database...")
    await init_db()
    log.info("Database initialized successfully")


@app.get("/")
async def root():
    """Root endpoint - API health check."""
    return {
        "message": "Organization Directory API",
        "version": "0.1.0",
        "status": "online",
        "docs": "/docs" if config.ENABLE_DOCS else None,
        "features": {
            "users": "User records, roles and soft delete",
            "departments": "Department tree with cycle protection",
            "positions": "Positions scoped to a department or shared",
            "teams": "Teams with department scope, capacity and lead protection",
            "assignments": "Assign, transfer, promote, unassign and bulk assign with history",
            "permissions": "Roles, permission grants and effective permission matrix",
            "audit-logs": "Audit trail of directory changes",
        }
    }


@app.get("/health")
async def health():
    """Health check endpoint."""
    return {"status": "healthy"}


# Include routers
app.include_router(user_router, prefix="/users", tags=["users"])
app.include_router(department_router, prefix="/departments", tags=["departments"])
app.include_router(position_router, prefix="/positions", tags=["positions"])
app.include_router(team_router, prefix="/teams", tags=["teams"])
app.include_router(assignment_router, prefix="/assignments", tags=["assignments"])

# Permission routes (roles, grants, effective permissions)
app.include_router(permission_router, prefix="/permissions", tags=["permissions"])

app.include_router(audit_router, prefix="/audit-logs", tags=["audit"])

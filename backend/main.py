import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
import uvicorn
from fastapi.middleware.cors import CORSMiddleware
from sqlalchemy.orm.exc import StaleDataError
from contextlib import asynccontextmanager

from core.auth import fastapi_users, auth_backend
from core.config import settings
from core.errors import DomainError, TransactionConflict
from core.logging_config import configure_logging
from db.database import create_db_and_tables
from routers.inventory import router as inventory_router
from routers.livestock import router as livestock_router
from routers.machinery import router as machinery_router
from schemas.users import UserRead, UserCreate, UserUpdate

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(settings.log_level)
    await create_db_and_tables()
    logger.info("AgroUs API started")
    yield


def setup_exception_handlers(app: FastAPI):

    @app.exception_handler(DomainError)
    async def domain_error_handler(request: Request, exc: DomainError):
        return JSONResponse(
            status_code=exc.status_code,
            content={"detail": exc.detail, "code": exc.code},
        )

    # A plain edit lost a version race against a ledger/livestock transaction
    @app.exception_handler(StaleDataError)
    async def stale_data_handler(request: Request, exc: StaleDataError):
        logger.warning("Stale write on %s %s: %s", request.method, request.url.path, exc)
        conflict = TransactionConflict(request.url.path, 1)
        return JSONResponse(
            status_code=conflict.status_code,
            content={"detail": conflict.detail, "code": conflict.code},
        )


app = FastAPI(
    title="AgroUs API",
    description="Farm records and inventory stock ledger",
    version="0.1.0",
    docs_url="/docs",
    redoc_url="/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

setup_exception_handlers(app)


# Authentication routes (fastapi-users)
app.include_router(fastapi_users.get_auth_router(auth_backend), prefix="/auth/jwt", tags=["auth"],)
app.include_router(fastapi_users.get_register_router(UserRead, UserCreate), prefix="/auth", tags=["auth"])
# Admin user management (superusers only, enforced by fastapi-users)
app.include_router(fastapi_users.get_users_router(UserRead, UserUpdate), prefix="/users", tags=["users"])

app.include_router(inventory_router, prefix="/inventory", tags=["inventory"])
app.include_router(machinery_router, prefix="/machinery", tags=["machinery"])
app.include_router(livestock_router, prefix="/livestock", tags=["livestock"])


@app.get("/health", tags=["health"])
async def health():
    return {"status": "ok"}


if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=True)

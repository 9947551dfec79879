import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager

from app.api import auth, users, user_resources, organizations, resources
from app.config import get_settings
from app.db.postgres import engine, Base, AsyncSessionLocal
from app.dependencies import get_memory_repository
from app.repositories.sql import SqlRepository
from app.services.authorization import ensure_roles
from app.services.errors import LedgerError, ValidationFailure

settings = get_settings()

logging.basicConfig(
    level=settings.log_level,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.storage_backend == "memory":
        await ensure_roles(get_memory_repository())
    else:
        # Startup: create tables and seed the system roles
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        async with AsyncSessionLocal() as session:
            await ensure_roles(SqlRepository(session))

    yield

    await engine.dispose()


app = FastAPI(
    title="StarLedger API",
    description="Balances, resources and organizations for Star Citizen players",
    version="0.1.0",
    lifespan=lifespan
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(LedgerError)
async def ledger_error_handler(request: Request, exc: LedgerError):
    content = {"detail": exc.message}
    if isinstance(exc, ValidationFailure):
        content["errors"] = exc.errors
    reason = getattr(exc, "reason", None)
    if reason is not None:
        content["reason"] = reason.value
    return JSONResponse(status_code=exc.status_code, content=content)


app.include_router(auth.router, prefix="/identity", tags=["identity"])
app.include_router(users.router, prefix="/users", tags=["users"])
app.include_router(user_resources.router, prefix="/userResources", tags=["user-resources"])
app.include_router(organizations.router, prefix="/organizations", tags=["organizations"])
app.include_router(resources.router, prefix="/resources", tags=["resources"])


@app.get("/health")
async def health():
    return {"status": "healthy"}

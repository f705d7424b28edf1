from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from marketboard.config import settings
from marketboard.database import check_health, close_database, init_database
from marketboard.dependencies import reset_services
from marketboard.details.router import router as details_router
from marketboard.exception_handlers import register_exception_handlers
from marketboard.functions.router import router as functions_router
from marketboard.fx.router import router as fx_router
from marketboard.logging_config import setup_logging
from marketboard.profiles.router import router as profiles_router
from marketboard.rankings.router import router as rankings_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    await init_database()
    yield
    reset_services()
    await close_database()


app = FastAPI(
    title="Marketboard",
    description="Top-gainers rankings, stock detail and company profiles for US and AR markets",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.cors_origins.split(",") if origin.strip()],
    allow_methods=["*"],
    allow_headers=["*"],
)

register_exception_handlers(app)

app.include_router(rankings_router, prefix="/api/v1/rankings", tags=["rankings"])
app.include_router(details_router, prefix="/api/v1/stocks", tags=["stocks"])
app.include_router(profiles_router, prefix="/api/v1/profiles", tags=["profiles"])
app.include_router(fx_router, prefix="/api/v1/fx", tags=["fx"])
app.include_router(functions_router, prefix="/functions/v1", tags=["functions"])


@app.get("/api/v1/health")
async def health():
    return {"status": "healthy", "database": await check_health()}

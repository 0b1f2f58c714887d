import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .auth import router as auth_router
from .config import settings
from .dashboard import router as dashboard_router
from .database import close_store, init_store
from .goals import router as goals_router
from .handlers import register_exception_handlers
from .insights import router as insights_router
from .notifications import router as notifications_router
from .seed import seed_demo_user
from .transactions import router as transactions_router

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_: FastAPI):
    logging.basicConfig(level=settings.log_level)
    store = await init_store()
    if settings.seed_demo_user:
        await seed_demo_user(store)
    logger.info("%s started", settings.app_name)
    yield
    await close_store()


app = FastAPI(title=settings.app_name, lifespan=lifespan)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[origin.strip() for origin in settings.cors_allow_origins.split(",") if origin.strip()],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
register_exception_handlers(app)

app.include_router(auth_router)
app.include_router(goals_router)
app.include_router(transactions_router)
app.include_router(notifications_router)
app.include_router(insights_router)
app.include_router(dashboard_router)


@app.get("/health")
def health() -> dict[str, str]:
    return {"status": "ok"}

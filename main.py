"""FastAPI entry point for the Skylab platform API."""

import logging
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.error_handlers import register_error_handlers
from config.settings import get_settings
from services.gemini_client import close_gemini_client
from services.middleware import RequestIdMiddleware
from services.supabase_service import close_supabase_service

logger = logging.getLogger(__name__)

settings = get_settings()


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle — clients are created lazily, closed here."""
    if not settings.supabase_configured:
        logger.warning("Supabase URL / service-role key not set — authenticated routes will return 500")
    if not settings.google_api_key:
        logger.warning("GOOGLE_API_KEY not set — /openai-proxy will return 500")

    yield

    await close_supabase_service()
    await close_gemini_client()


app = FastAPI(
    title="Skylab Platform API",
    description="Admin, teacher dashboard, footfall and assistant endpoints for the Skylab curriculum",
    version="0.1.0",
    lifespan=lifespan,
)

# ── Middleware stack (outermost first) ─────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_middleware(RequestIdMiddleware)

register_error_handlers(app)

# ── Register routers ────────────────────────────────────────
from api.admin_users import router as admin_router  # noqa: E402
from api.assistant import router as assistant_router  # noqa: E402
from api.footfall import router as footfall_router  # noqa: E402
from api.health import router as health_router  # noqa: E402
from api.teacher import router as teacher_router  # noqa: E402

app.include_router(health_router)
app.include_router(admin_router)
app.include_router(teacher_router)
app.include_router(footfall_router)
app.include_router(assistant_router)


if __name__ == "__main__":
    if settings.debug:
        # Development: single worker with reload
        uvicorn.run(
            "main:app",
            host="0.0.0.0",
            port=settings.service_port,
            reload=True,
        )
    else:
        # Production: prefer gunicorn main:app -c deploy/gunicorn.conf.py
        uvicorn.run(
            "main:app",
            host="0.0.0.0",
            port=settings.service_port,
            workers=4,
        )

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from edumessage.api.routes import (
    ai, auth, classes, homework, messages, notifications, session_qa, sessions, users,
)
from edumessage.core.ai_errors import AIHintException, ai_hint_exception_handler
from edumessage.core.config import settings
from edumessage.core.logging_config import get_logger, setup_logging
from edumessage.core.middleware import RequestLoggingMiddleware, SecurityHeadersMiddleware
from edumessage.core.rate_limit import limiter
from edumessage.db.database import init_db

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    logger.info(f"Starting {settings.app_name} v{settings.app_version} ({settings.environment})")
    init_db()
    if not settings.gemini_api_key:
        logger.warning("GEMINI_API_KEY is not set; AI analysis endpoints will return 503")
    yield
    logger.info(f"Shutting down {settings.app_name}")


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
app.add_exception_handler(AIHintException, ai_hint_exception_handler)

# Last added runs first
app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLoggingMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

for module in (auth, users, classes, messages, notifications, homework, sessions, session_qa, ai):
    app.include_router(module.router, prefix="/api")


@app.get("/health")
def health():
    return {"status": "healthy", "version": settings.app_version}


if __name__ == "__main__":
    import uvicorn

    uvicorn.run("edumessage.main:app", host="0.0.0.0", port=8000, reload=True)

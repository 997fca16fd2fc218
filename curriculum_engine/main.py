from __future__ import annotations

from fastapi import FastAPI, HTTPException
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware

from curriculum_engine import __version__
from curriculum_engine.api.routes import ai, cron, curriculum
from curriculum_engine.config import get_settings
from curriculum_engine.core.errors import RateLimitExceededError
from curriculum_engine.core.exceptions import global_exception_handler, http_exception_handler, rate_limit_exception_handler, request_validation_exception_handler
from curriculum_engine.core.lifespan import lifespan
from curriculum_engine.core.middleware import RequestLoggingMiddleware

settings = get_settings()

app = FastAPI(title="Curriculum Engine", version=__version__, lifespan=lifespan, docs_url=None if settings.environment == "production" else "/docs", redoc_url=None)

app.add_middleware(CORSMiddleware, allow_origins=list(settings.allowed_origins), allow_credentials=True, allow_methods=["GET", "POST", "OPTIONS"], allow_headers=["content-type", "authorization", "x-curriculum-task-secret"])

# Add exception handlers
app.add_exception_handler(Exception, global_exception_handler)
app.add_exception_handler(HTTPException, http_exception_handler)
app.add_exception_handler(RateLimitExceededError, rate_limit_exception_handler)
app.add_exception_handler(RequestValidationError, request_validation_exception_handler)

app.add_middleware(RequestLoggingMiddleware)


@app.get("/health", include_in_schema=False)
async def health_check() -> dict[str, str]:
  """Return a simple health status."""
  return {"status": "ok", "version": __version__}


app.include_router(curriculum.router, prefix="/v1/curriculum", tags=["curriculum"])
app.include_router(ai.router, prefix="/v1/ai", tags=["ai"])
app.include_router(cron.router, prefix="/internal/cron", tags=["cron"])

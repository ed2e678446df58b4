"""HTTP surface for the synthesis pipeline.

Routes:
- GET  /api/v1/health  pool-emptiness check, no network call
- POST /api/v1/chef    one tagged action: generate | analyze | filters | image

Every pipeline failure is answered as ``{"status": "error", "error": code, "message": ...}``
with the HTTP status from ``ERROR_STATUS``.
"""

from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from src.models.errors import (
    CredentialsExhausted,
    EmptyInput,
    InvalidImage,
    MalformedJSON,
    MissingCoreIngredient,
    NoImageProduced,
    SchemaViolation,
    SynthesisError,
    SynthesisRejectedInput,
    SynthesisUnavailable,
    Unconfigured,
)
from src.models.models import HealthReport, chef_action_adapter
from src.pipeline.synthesis import SynthesisPipeline
from src.utils.logger import logger


ERROR_STATUS = {
    EmptyInput: 400,
    MissingCoreIngredient: 400,
    InvalidImage: 400,
    SynthesisRejectedInput: 422,
    MalformedJSON: 502,
    SchemaViolation: 502,
    NoImageProduced: 502,
    Unconfigured: 503,
    CredentialsExhausted: 503,
    SynthesisUnavailable: 503,
}


def status_for(error: SynthesisError) -> int:
    """HTTP status for a pipeline error (most specific class wins)."""
    for klass in type(error).__mro__:
        if klass in ERROR_STATUS:
            return ERROR_STATUS[klass]
    return 500


def create_app(pipeline: Optional[SynthesisPipeline] = None) -> FastAPI:
    """Build the FastAPI app around a pipeline (one is created from config if omitted)."""
    app = FastAPI(
        title="Chef Synthesis Service",
        description="Structured recipe, ingredient recognition and food image synthesis",
    )
    app.state.pipeline = pipeline or SynthesisPipeline()

    @app.exception_handler(SynthesisError)
    async def synthesis_error_handler(request: Request, exc: SynthesisError) -> JSONResponse:
        status = status_for(exc)
        logger.warning(f"{request.url.path} -> {status} {exc.code}: {exc.message}")
        return JSONResponse(status_code=status, content=exc.to_dict())

    @app.get("/api/v1/health", response_model=HealthReport)
    async def health(request: Request) -> HealthReport:
        return request.app.state.pipeline.health()

    @app.post("/api/v1/chef")
    async def chef(request: Request) -> dict:
        try:
            body = await request.json()
        except ValueError:
            raise RequestValidationError(
                [{"type": "json_invalid", "loc": ("body",), "msg": "Request body is not valid JSON"}]
            ) from None
        try:
            action = chef_action_adapter.validate_python(body)
        except ValidationError as e:
            raise RequestValidationError(e.errors(include_url=False, include_context=False)) from None

        pipeline: SynthesisPipeline = request.app.state.pipeline
        # Deployment error, reported before any pipeline run
        pipeline.ensure_configured()
        return await pipeline.handle(action)

    return app

"""
Verification Engine - HTTP Server

FastAPI surface over the verification engine: submit content for
verification, poll or cancel in-flight verifications, fetch results and
inspect cache and metrics.
"""

import logging
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, Field

from . import __version__
from .engine import (
    VerificationEngine,
    VerificationError,
    VerificationErrorKind,
    create_engine,
)
from .main import (
    Domain,
    EngineConfig,
    ParsedContent,
    Urgency,
    VerificationOptions,
    VerificationRequest,
)

logger = logging.getLogger(__name__)

ERROR_STATUS = {
    VerificationErrorKind.INVALID_REQUEST: 400,
    VerificationErrorKind.NOT_FOUND: 404,
    VerificationErrorKind.RESOURCE_EXHAUSTED: 429,
    VerificationErrorKind.CANCELLED: 409,
}


# --- Request Models ---


class ContentModel(BaseModel):
    """Parsed content to verify"""

    id: str = Field(..., description="Content identifier")
    extracted_text: str = Field(..., description="Plain text extracted from the document")
    metadata: Dict[str, Any] = Field(default_factory=dict)


class OptionsModel(BaseModel):
    """Per-request verification options"""

    confidence_threshold: Optional[float] = Field(
        default=None, ge=0, le=100, description="Minimum acceptable confidence (0-100)"
    )
    max_processing_time: Optional[int] = Field(
        default=None, gt=0, description="Per-module time budget in milliseconds"
    )


class VerifyRequest(BaseModel):
    """Request to verify content"""

    content: ContentModel
    domain: str = Field(..., description="legal, financial, healthcare or insurance")
    urgency: str = Field(default="medium", description="low, medium or high")
    options: OptionsModel = Field(default_factory=OptionsModel)
    user_id: Optional[str] = None
    organization_id: Optional[str] = None


def _parse_enum(enum_cls, value: str, field_name: str):
    try:
        return enum_cls(value.lower())
    except ValueError:
        choices = ", ".join(m.value for m in enum_cls)
        raise HTTPException(
            status_code=400,
            detail=f"Invalid {field_name}: {value}. Must be one of: {choices}",
        )


def to_verification_request(body: VerifyRequest) -> VerificationRequest:
    return VerificationRequest(
        content=ParsedContent(
            id=body.content.id,
            extracted_text=body.content.extracted_text,
            metadata=body.content.metadata,
        ),
        domain=_parse_enum(Domain, body.domain, "domain"),
        urgency=_parse_enum(Urgency, body.urgency, "urgency"),
        options=VerificationOptions(
            confidence_threshold=body.options.confidence_threshold,
            max_processing_time_ms=body.options.max_processing_time,
        ),
        user_id=body.user_id,
        organization_id=body.organization_id,
    )


def create_app(engine: Optional[VerificationEngine] = None) -> FastAPI:
    """Build the FastAPI app around an engine (default: compliance modules, env config)"""
    engine = engine or create_engine(EngineConfig.from_env())

    app = FastAPI(
        title="Content Verification Engine",
        description="Domain compliance verification with risk-scored results",
        version=__version__,
    )
    app.state.engine = engine

    @app.exception_handler(VerificationError)
    async def verification_error_handler(request: Request, exc: VerificationError) -> JSONResponse:
        status_code = ERROR_STATUS.get(exc.kind, 500)
        if status_code >= 500:
            logger.error(f"Verification error on {request.url.path}: {exc}")
        return JSONResponse(
            status_code=status_code,
            content={
                "error": exc.kind.value,
                "detail": str(exc),
                "verification_id": exc.verification_id,
            },
        )

    # --- Endpoints ---

    @app.get("/health")
    async def health() -> Dict[str, Any]:
        """Health check with module status"""
        return await engine.health_check()

    @app.post("/verify")
    async def verify(body: VerifyRequest) -> Dict[str, Any]:
        """Verify content against the domain's registered module"""
        request = to_verification_request(body)
        logger.info(f"Verification request for content {body.content.id} (domain={body.domain})")
        result = await engine.verify(request)
        return result.to_dict()

    @app.get("/verifications/{verification_id}/status")
    async def verification_status(verification_id: str) -> Dict[str, Any]:
        return engine.get_verification_status(verification_id).to_dict()

    @app.post("/verifications/{verification_id}/cancel")
    async def cancel_verification(verification_id: str) -> Dict[str, Any]:
        return {
            "verification_id": verification_id,
            "cancelled": engine.cancel_verification(verification_id),
        }

    @app.get("/results/{verification_id}")
    async def get_result(verification_id: str) -> Dict[str, Any]:
        result = await engine.get_cached_result(verification_id)
        if result is None:
            raise HTTPException(
                status_code=404,
                detail=f"Result for verification {verification_id} not found",
            )
        return result.to_dict()

    @app.delete("/cache")
    async def invalidate_cache(key: Optional[str] = None) -> Dict[str, Any]:
        engine.invalidate_cache(key)
        return {"invalidated": key or "all"}

    @app.get("/metrics")
    async def metrics() -> Dict[str, Any]:
        return engine.get_processing_metrics().to_dict()

    @app.get("/cache/stats")
    async def cache_stats() -> Dict[str, Any]:
        return engine.get_cache_stats()

    @app.get("/modules")
    async def modules() -> Dict[str, List[str]]:
        return {"modules": engine.get_registered_modules()}

    return app


app = create_app()

"""HTTP routes for plan analysis."""

from typing import Any

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from plan_analysis.errors import InvalidRequestError, PlanAnalysisError
from plan_analysis.logging import get_logger
from plan_analysis.models import AnalysisRequest
from plan_analysis.reconciler import split_sections
from plan_analysis.service import PlanAnalysisService

logger = get_logger(__name__)

router = APIRouter()

UNKNOWN_PROPERTY = "N/A"


def _get_service(request: Request) -> PlanAnalysisService:
    return request.app.state.service  # type: ignore[no-any-return]


def _error_response(error: PlanAnalysisError, property_id: str) -> JSONResponse:
    return JSONResponse(
        {"error": error.message, "details": error.details, "propertyId": property_id},
        status_code=error.status_code,
    )


def _format_validation_error(e: ValidationError) -> str:
    """One line per invalid field: ``imageRef: Field required``."""
    parts = []
    for err in e.errors():
        loc = ".".join(str(p) for p in err["loc"]) or "body"
        parts.append(f"{loc}: {err['msg']}")
    return "; ".join(parts)


def _property_id_from_body(body: Any) -> str:
    if isinstance(body, dict):
        for key in ("propertyId", "houseId", "property_id"):
            value = body.get(key)
            if value not in (None, ""):
                return str(value)
    return UNKNOWN_PROPERTY


@router.get("/health")
async def health_check() -> JSONResponse:
    """Liveness probe."""
    return JSONResponse({"status": "ok"})


@router.post("/analyze-plan")
async def analyze_plan(request: Request) -> JSONResponse:
    """Analyze a floor plan and merge the result into the property's record."""
    try:
        body = await request.json()
    except ValueError:
        return _error_response(
            InvalidRequestError("Request body must be a JSON object"), UNKNOWN_PROPERTY
        )

    property_id = _property_id_from_body(body)

    try:
        analysis_request = AnalysisRequest.model_validate(body)
    except ValidationError as e:
        details = _format_validation_error(e)
        logger.info("analysis_request_rejected", property_id=property_id, details=details)
        return _error_response(InvalidRequestError(details), property_id)

    try:
        outcome = await _get_service(request).analyze(analysis_request)
    except PlanAnalysisError as e:
        logger.error(
            "plan_analysis_failed",
            property_id=property_id,
            error_type=type(e).__name__,
            details=e.details,
        )
        return _error_response(e, property_id)
    except Exception as e:
        logger.error("plan_analysis_crashed", property_id=property_id, exc_info=True)
        return JSONResponse(
            {"error": PlanAnalysisError.message, "details": str(e), "propertyId": property_id},
            status_code=500,
        )

    return JSONResponse(
        {
            "success": True,
            "message": "Analysis complete",
            "analysis": outcome.record,
            "modelUsed": outcome.model_name,
            "status": outcome.status.value,
        }
    )


@router.get("/properties/{property_id}/analysis")
async def get_analysis(request: Request, property_id: str) -> JSONResponse:
    """Current analysis of a property, split into its standard and operational sections."""
    try:
        record, updated_at = await _get_service(request).get_record(property_id)
    except PlanAnalysisError as e:
        logger.error("analysis_read_failed", property_id=property_id, details=e.details)
        return _error_response(e, property_id)

    if not record:
        return JSONResponse(
            {
                "error": "Analysis not found",
                "details": f"No analysis has been saved for property {property_id}",
                "propertyId": property_id,
            },
            status_code=404,
        )

    standard, operational = split_sections(record)
    return JSONResponse(
        {
            "propertyId": property_id,
            "standard": standard,
            "operationalReport": operational,
            "updatedAt": updated_at.isoformat() if updated_at else None,
        }
    )

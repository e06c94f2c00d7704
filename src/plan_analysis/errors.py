"""Error taxonomy for the plan analysis pipeline.

Each error carries the HTTP status the web layer reports for it. Errors marked
internal are handled inside the pipeline and only surface if recovery fails.
"""

from typing import ClassVar


class PlanAnalysisError(Exception):
    """Base class for every failure the pipeline reports to a caller."""

    status_code: ClassVar[int] = 500
    message: ClassVar[str] = "Plan analysis failed"

    def __init__(self, details: str) -> None:
        super().__init__(details)
        self.details = details


class InvalidRequestError(PlanAnalysisError):
    """Bad or missing request fields. Not retried."""

    status_code = 400
    message = "Invalid request"


class AcquisitionError(PlanAnalysisError):
    """The plan image could not be retrieved by any path."""

    message = "Plan image could not be retrieved"


class PathResolutionError(AcquisitionError):
    """Image reference does not map to a path inside the plan bucket (internal)."""


class ModelNotFoundError(PlanAnalysisError):
    """The requested model name is unavailable (internal, triggers fallback)."""

    message = "Model not found"

    def __init__(self, details: str, *, model_name: str) -> None:
        super().__init__(details)
        self.model_name = model_name


class UpstreamError(PlanAnalysisError):
    """The model endpoint returned a non-success response."""

    message = "Model endpoint error"

    def __init__(
        self,
        details: str,
        *,
        model_name: str,
        upstream_status: int | None = None,
    ) -> None:
        super().__init__(details)
        self.model_name = model_name
        self.upstream_status = upstream_status


class EmptyResponseError(UpstreamError):
    """The model call succeeded but returned no text."""

    message = "Model returned an empty response"


class ConflictError(PlanAnalysisError):
    """Another analysis for the same property is being reconciled. Retry later."""

    status_code = 409
    message = "Concurrent analysis in progress"


class PersistenceError(PlanAnalysisError):
    """The analysis record could not be read or written."""

    message = "Analysis could not be saved"

"""Pydantic models for analysis requests, images and results."""

from enum import Enum
from typing import Annotated, Any, Final, Literal

from pydantic import (
    AliasChoices,
    BaseModel,
    ConfigDict,
    Field,
    computed_field,
    field_validator,
)


class AnalysisMode(str, Enum):
    """Which analysis schema the pipeline produces."""

    STANDARD = "standard"
    OPERATIONAL = "operational"


# Older clients sent "preventive" for the standard analysis
_MODE_ALIASES: Final[dict[str, str]] = {"preventive": AnalysisMode.STANDARD.value}


class AnalysisStatus(str, Enum):
    """Whether an analysis is a real model result or a parse-failure placeholder."""

    OK = "ok"
    DEGRADED = "degraded"


# Key of the operational section inside a persisted record
OPERATIONAL_REPORT_KEY: Final = "operational_report"

# Metadata keys written into every persisted section
STATUS_KEY: Final = "analysis_status"
MODEL_KEY: Final = "model_used"

# Placeholder keys a degraded section holds instead of parsed fields
PARSING_ERROR_KEY: Final = "parsing_error"
RAW_TEXT_KEY: Final = "raw_text"
DEGRADED_FIELDS: Final[tuple[str, ...]] = (PARSING_ERROR_KEY, RAW_TEXT_KEY)


class AnalysisRequest(BaseModel):
    """Inbound analysis request. Accepts the current and the legacy field names."""

    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")

    image_ref: str = Field(
        validation_alias=AliasChoices("imageRef", "planUrl", "image_ref"),
        description="Bucket-relative path or public URL of the plan image",
    )
    property_id: str = Field(
        validation_alias=AliasChoices("propertyId", "houseId", "property_id"),
    )
    mode: AnalysisMode
    context_data: dict[str, Any] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("contextData", "context_data"),
    )
    instruction_override: str | None = Field(
        default=None,
        validation_alias=AliasChoices(
            "instructionOverride", "promptInstruction", "instruction_override"
        ),
    )

    @field_validator("image_ref", "property_id", mode="before")
    @classmethod
    def require_non_blank(cls, v: Any) -> Any:
        """Reject empty or whitespace-only identifiers; coerce numeric ids to str."""
        if isinstance(v, int) and not isinstance(v, bool):
            v = str(v)
        if isinstance(v, str):
            v = v.strip()
            if not v:
                raise ValueError("must not be blank")
        return v

    @field_validator("mode", mode="before")
    @classmethod
    def normalize_mode(cls, v: Any) -> Any:
        if isinstance(v, str):
            v = v.strip().lower()
            return _MODE_ALIASES.get(v, v)
        return v

    @field_validator("context_data", mode="before")
    @classmethod
    def none_context_to_empty(cls, v: Any) -> Any:
        return {} if v is None else v


class ImageAsset(BaseModel):
    """Raw plan image bytes held for the duration of one request."""

    model_config = ConfigDict(frozen=True)

    data: bytes = Field(repr=False)
    mime_type: str
    source: Literal["bucket", "public_url"]

    @computed_field  # type: ignore[prop-decorator]
    @property
    def size_bytes(self) -> int:
        return len(self.data)


class ModelResponse(BaseModel):
    """Text produced by the model, and which model produced it."""

    model_config = ConfigDict(frozen=True, protected_namespaces=())

    text: str
    model_name: str
    used_fallback: bool = False


class _AnalysisBase(BaseModel):
    model_config = ConfigDict(frozen=True, protected_namespaces=())

    payload: dict[str, Any]
    status: AnalysisStatus = AnalysisStatus.OK
    model_name: str | None = None

    def to_section(self) -> dict[str, Any]:
        """Fields as persisted: the model output plus status and model metadata."""
        section = dict(self.payload)
        section[STATUS_KEY] = self.status.value
        if self.model_name is not None:
            section[MODEL_KEY] = self.model_name
        return section


class StandardAnalysis(_AnalysisBase):
    """Preventive fire-safety review of a plan."""

    mode: Literal[AnalysisMode.STANDARD] = AnalysisMode.STANDARD


class OperationalAnalysis(_AnalysisBase):
    """Tactical incident-response report for a plan."""

    mode: Literal[AnalysisMode.OPERATIONAL] = AnalysisMode.OPERATIONAL


AnalysisResult = Annotated[StandardAnalysis | OperationalAnalysis, Field(discriminator="mode")]


# Field names the model is asked to return for each mode. Used by the
# read-side splitter to recognise legacy records with a flattened
# operational section.
STANDARD_FIELDS: Final[tuple[str, ...]] = (
    "summary",
    "high_risk_zones",
    "evacuation_routes",
    "access_points",
    "fire_propagation",
    "safety_recommendations",
    "overall_risk_score",
)
OPERATIONAL_FIELDS: Final[tuple[str, ...]] = (
    "operational_summary",
    "access_points",
    "risk_zones",
    "evacuation_routes",
    "tactical_recommendations",
)

"""Turn raw model text into a tagged analysis result."""

import json
import re
from typing import Any, Final

from plan_analysis.logging import get_logger
from plan_analysis.models import (
    PARSING_ERROR_KEY,
    RAW_TEXT_KEY,
    AnalysisMode,
    AnalysisResult,
    AnalysisStatus,
    OperationalAnalysis,
    StandardAnalysis,
)

logger = get_logger(__name__)

_FENCE_RE: Final = re.compile(r"```(?:json)?", re.IGNORECASE)
_TRAILING_COMMA_RE: Final = re.compile(r",\s*([}\]])")

PARSING_ERROR_MESSAGE: Final = "Invalid JSON"


def strip_code_fences(text: str) -> str:
    """Remove Markdown code-fence markers and surrounding whitespace.

    Idempotent: clean text comes back unchanged.
    """
    return _FENCE_RE.sub("", text).strip()


def _parse_object(text: str) -> dict[str, Any] | None:
    """Parse a JSON object, tolerating trailing commas and surrounding prose."""
    candidates = [text, _TRAILING_COMMA_RE.sub(r"\1", text)]
    start, end = text.find("{"), text.rfind("}")
    if 0 <= start < end:
        span = text[start : end + 1]
        candidates += [span, _TRAILING_COMMA_RE.sub(r"\1", span)]

    for candidate in candidates:
        try:
            parsed = json.loads(candidate)
        except ValueError:
            continue
        if isinstance(parsed, dict):
            return parsed
    return None


def normalize(
    text: str, mode: AnalysisMode, model_name: str | None = None
) -> AnalysisResult:
    """Build the analysis result for ``mode`` from raw model text.

    Unparsable output is not an error: the result is marked degraded and keeps
    the cleaned text under ``raw_text`` so it can be reviewed manually.
    """
    cleaned = strip_code_fences(text)
    payload = _parse_object(cleaned)
    status = AnalysisStatus.OK

    if payload is None:
        logger.warning(
            "model_output_not_json",
            mode=mode.value,
            model=model_name,
            preview=cleaned[:200],
        )
        payload = {PARSING_ERROR_KEY: PARSING_ERROR_MESSAGE, RAW_TEXT_KEY: cleaned}
        status = AnalysisStatus.DEGRADED

    match mode:
        case AnalysisMode.STANDARD:
            return StandardAnalysis(payload=payload, status=status, model_name=model_name)
        case AnalysisMode.OPERATIONAL:
            return OperationalAnalysis(payload=payload, status=status, model_name=model_name)

"""Tests for model output normalization."""

import json

from hypothesis import given
from hypothesis import strategies as st

from plan_analysis.models import (
    AnalysisMode,
    AnalysisStatus,
    OperationalAnalysis,
    StandardAnalysis,
)
from plan_analysis.normalizer import normalize, strip_code_fences

# Backticks inside values would be read as fence markers
_NO_BACKTICKS = st.characters(blacklist_categories=("Cs",), blacklist_characters="`")


class TestStripCodeFences:
    def test_json_fence(self) -> None:
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_bare_fence(self) -> None:
        assert strip_code_fences('```\n{"a": 1}\n```\n') == '{"a": 1}'

    def test_uppercase_tag(self) -> None:
        assert strip_code_fences('```JSON\n{"a": 1}```') == '{"a": 1}'

    def test_plain_text_untouched(self) -> None:
        assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'

    @given(st.text())
    def test_idempotent(self, text: str) -> None:
        once = strip_code_fences(text)
        assert strip_code_fences(once) == once


class TestNormalize:
    def test_clean_json_standard(self) -> None:
        result = normalize(
            '{"summary": "Two-storey house", "overall_risk_score": 4}',
            AnalysisMode.STANDARD,
            "claude-sonnet-4-5-20250929",
        )
        assert isinstance(result, StandardAnalysis)
        assert result.status is AnalysisStatus.OK
        assert result.payload == {"summary": "Two-storey house", "overall_risk_score": 4}
        assert result.model_name == "claude-sonnet-4-5-20250929"

    def test_fenced_json_operational(self) -> None:
        text = '```json\n{"operational_summary": "Gas meter in garage"}\n```'
        result = normalize(text, AnalysisMode.OPERATIONAL)
        assert isinstance(result, OperationalAnalysis)
        assert result.payload == {"operational_summary": "Gas meter in garage"}

    def test_prose_around_object(self) -> None:
        text = 'Here is the analysis:\n{"summary": "ok"}\nLet me know if you need more.'
        result = normalize(text, AnalysisMode.STANDARD)
        assert result.status is AnalysisStatus.OK
        assert result.payload == {"summary": "ok"}

    def test_trailing_commas_tolerated(self) -> None:
        text = '{"tactical_recommendations": ["Cut gas", "Ventilate",],}'
        result = normalize(text, AnalysisMode.OPERATIONAL)
        assert result.status is AnalysisStatus.OK
        assert result.payload == {"tactical_recommendations": ["Cut gas", "Ventilate"]}

    def test_unparsable_text_is_degraded(self) -> None:
        text = "```\nI cannot read this plan, the image is too blurry.\n```"
        result = normalize(text, AnalysisMode.STANDARD, "m")
        assert isinstance(result, StandardAnalysis)
        assert result.status is AnalysisStatus.DEGRADED
        assert result.payload == {
            "parsing_error": "Invalid JSON",
            "raw_text": "I cannot read this plan, the image is too blurry.",
        }

    def test_json_array_is_degraded(self) -> None:
        result = normalize('[1, 2, 3]', AnalysisMode.STANDARD)
        assert result.status is AnalysisStatus.DEGRADED

    def test_empty_object_is_ok(self) -> None:
        result = normalize("{}", AnalysisMode.OPERATIONAL)
        assert result.status is AnalysisStatus.OK
        assert result.payload == {}

    @given(
        st.dictionaries(
            st.text(_NO_BACKTICKS, min_size=1, max_size=10),
            st.one_of(st.integers(), st.text(_NO_BACKTICKS, max_size=20), st.booleans(), st.none()),
            max_size=5,
        )
    )
    def test_any_fenced_object_parses(self, payload: dict) -> None:
        text = f"```json\n{json.dumps(payload)}\n```"
        result = normalize(text, AnalysisMode.STANDARD)
        assert result.status is AnalysisStatus.OK
        assert result.payload == payload

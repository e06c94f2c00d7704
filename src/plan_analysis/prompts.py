"""Instruction prompts for floor-plan analysis."""

import json
from typing import Any, Final

from plan_analysis.models import AnalysisMode

OPERATIONAL_SYSTEM_PROMPT: Final = """\
You are an incident-command analyst for a fire and rescue service. \
You read building floor plans to prepare crews before they arrive on scene: \
where to enter, where occupants will move, which areas are dangerous and \
what the first tactical actions should be. Be concrete and refer to rooms, \
doors and stairways as they are drawn on the plan."""

STANDARD_SYSTEM_PROMPT: Final = """\
You are an architect specialised in fire-safety design review. \
You assess floor plans for fire risk: where a fire is likely to start or \
spread, whether occupants can evacuate in time and what should be changed \
to reduce the risk. Base every statement on what the plan shows."""

OPERATIONAL_DEFAULT_TASK: Final = "Produce an operational report for this floor plan."
STANDARD_DEFAULT_TASK: Final = "Analyse this floor plan for fire safety."

OPERATIONAL_SCHEMA: Final = """\
IMPORTANT: Return ONLY valid JSON (no Markdown, no commentary) with this structure:
{
  "operational_summary": "Situation summary for the incident commander.",
  "access_points": [{"id": "A1", "location": "...", "description": "..."}],
  "evacuation_routes": [{"name": "...", "description": "..."}],
  "risk_zones": [{"zone": "...", "risk": "...", "tactical_advice": "..."}],
  "tactical_recommendations": ["First action", "Second action"]
}
List tactical_recommendations in the order they should be carried out."""

STANDARD_SCHEMA: Final = """\
IMPORTANT: Return ONLY valid JSON (no Markdown, no commentary) with this structure:
{
  "summary": "General description of the plan and its fire risk.",
  "high_risk_zones": [{"name": "...", "risk_level": 80, "reason": "..."}],
  "evacuation_routes": ["..."],
  "access_points": ["..."],
  "fire_propagation": {"estimated_time_critical": "...", "critical_zones": ["..."]},
  "safety_recommendations": ["..."],
  "overall_risk_score": 5
}
risk_level is a number from 0 to 100. overall_risk_score is an integer from 0 to 10."""


def _format_context(context_data: dict[str, Any]) -> str:
    """Serialize property context deterministically."""
    return json.dumps(context_data, sort_keys=True, ensure_ascii=False, default=str)


def _task_sentence(instruction_override: str | None, default: str) -> str:
    if instruction_override and instruction_override.strip():
        return instruction_override.strip()
    return default


def build_prompts(
    mode: AnalysisMode,
    context_data: dict[str, Any] | None = None,
    instruction_override: str | None = None,
) -> tuple[str, str]:
    """Build the system and user instructions for one analysis.

    The override only replaces the task sentence. The JSON contract for the
    mode is always appended unchanged, so the normalizer sees a stable shape.

    Args:
        mode: Which analysis to request.
        context_data: Free-form property attributes (structure, occupants...).
        instruction_override: Caller-supplied task sentence.

    Returns:
        Tuple of (system_instruction, user_instruction).
    """
    context = context_data or {}

    match mode:
        case AnalysisMode.OPERATIONAL:
            system = (
                f"{OPERATIONAL_SYSTEM_PROMPT}\n\n"
                f"<property_context>\n{_format_context(context)}\n</property_context>"
            )
            task = _task_sentence(instruction_override, OPERATIONAL_DEFAULT_TASK)
            user = f"{task}\n\n{OPERATIONAL_SCHEMA}"
        case AnalysisMode.STANDARD:
            system = STANDARD_SYSTEM_PROMPT
            if context:
                system += (
                    f"\n\n<property_context>\n{_format_context(context)}\n</property_context>"
                )
            task = _task_sentence(instruction_override, STANDARD_DEFAULT_TASK)
            user = f"{task}\n\n{STANDARD_SCHEMA}"

    return system, user

"""Non-destructive merge of a new analysis into the persisted record."""

from typing import Any

from plan_analysis.models import (
    DEGRADED_FIELDS,
    OPERATIONAL_FIELDS,
    OPERATIONAL_REPORT_KEY,
    STANDARD_FIELDS,
    AnalysisResult,
    OperationalAnalysis,
    StandardAnalysis,
)


def reconcile(existing: dict[str, Any] | None, result: AnalysisResult) -> dict[str, Any]:
    """Merge ``result`` into ``existing`` without touching the other mode's section.

    - Operational results replace only ``operational_report``.
    - Standard results are shallow-merged over the top-level fields; the
      existing ``operational_report`` is re-attached last, so a standard
      payload that omits or redefines that key cannot drop it. Placeholder
      keys left by an earlier degraded standard result are removed first, so
      they only survive if the new result is degraded too.

    Neither input is mutated.
    """
    base: dict[str, Any] = dict(existing) if existing else {}
    section = result.to_section()

    match result:
        case OperationalAnalysis():
            return {**base, OPERATIONAL_REPORT_KEY: section}
        case StandardAnalysis():
            existing_report = base.get(OPERATIONAL_REPORT_KEY)
            section.pop(OPERATIONAL_REPORT_KEY, None)
            for key in DEGRADED_FIELDS:
                base.pop(key, None)
            merged = {**base, **section}
            if existing_report is not None:
                merged[OPERATIONAL_REPORT_KEY] = existing_report
            return merged


_OPERATIONAL_ONLY_FIELDS = frozenset(OPERATIONAL_FIELDS) - frozenset(STANDARD_FIELDS)
_STANDARD_ONLY_FIELDS = frozenset(STANDARD_FIELDS) - frozenset(OPERATIONAL_FIELDS)


def split_sections(
    record: dict[str, Any] | None,
) -> tuple[dict[str, Any] | None, dict[str, Any] | None]:
    """Split a persisted record into (standard, operational) views for display.

    Records written before the operational section was nested hold its fields
    at the top level; those are recognised by operational-only keys and moved
    into the operational view. Fields both modes share stay in the standard
    view when standard-only fields sit beside them.
    """
    if not record:
        return None, None

    report = record.get(OPERATIONAL_REPORT_KEY)
    standard = {k: v for k, v in record.items() if k != OPERATIONAL_REPORT_KEY}

    if report is None and _OPERATIONAL_ONLY_FIELDS & standard.keys():
        if not _STANDARD_ONLY_FIELDS & standard.keys():
            return None, standard
        legacy = {k: v for k, v in standard.items() if k in _OPERATIONAL_ONLY_FIELDS}
        rest = {k: v for k, v in standard.items() if k not in _OPERATIONAL_ONLY_FIELDS}
        return rest, legacy

    return (standard or None), report


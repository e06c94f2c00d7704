"""Database storage for plan analysis records."""

from plan_analysis.db.storage import AnalysisStorage, StoredAnalysis

__all__ = ["AnalysisStorage", "StoredAnalysis"]

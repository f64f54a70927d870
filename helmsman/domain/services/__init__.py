"""
Domain Services Package

Architectural Intent:
- Contains the pure evaluation services: SLO evaluation and burn-rate analysis
- No service here mutates external state
"""

from helmsman.domain.services.burn_rate import (
    BurnClassification,
    BurnRateAnalysis,
    BurnRateAnalyzer,
)
from helmsman.domain.services.promql import PromQLQueries
from helmsman.domain.services.slo_evaluator import SLOEvaluator

__all__ = [
    "BurnClassification",
    "BurnRateAnalysis",
    "BurnRateAnalyzer",
    "PromQLQueries",
    "SLOEvaluator",
]

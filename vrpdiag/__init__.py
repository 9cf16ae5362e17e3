"""
VRP unassigned-job diagnostics package.
Explains, for every job an optimizer left out, the constraint that blocked it.
"""

__version__ = "0.1.0"

from .evaluator import FeasibilityEvaluator, JobEvaluation
from .registry import ConstraintRegistry, PRIORITY_ORDER
from .reports import UnassignedReport, UnassignedReportBuilder
from .resolver import ReasonResolver, Resolution
from .service import DiagnosticsService
from .models import *
from .schemas import *

__all__ = [
    "ConstraintRegistry",
    "DiagnosticsService",
    "FeasibilityEvaluator",
    "JobEvaluation",
    "PRIORITY_ORDER",
    "ReasonResolver",
    "Resolution",
    "UnassignedReport",
    "UnassignedReportBuilder",
]

"""
Risk Layer - Candidate screening.

This module provides:
    - RiskScoringEngine: Multi-stage accept/reject gate
    - RiskReportClient: Fetches reports from the risk service
    - RiskReport, RiskDecision, RiskConfig: Models and thresholds
"""

from .client import RiskReportClient
from .engine import RiskScoringEngine
from .models import (
    MarketInfo,
    RiskConfig,
    RiskDecision,
    RiskFlag,
    RiskReport,
    TokenInfo,
    TokenMeta,
    TopHolder,
)

__all__ = [
    "RiskScoringEngine",
    "RiskReportClient",
    "RiskConfig",
    "RiskDecision",
    "RiskReport",
    "RiskFlag",
    "MarketInfo",
    "TokenInfo",
    "TokenMeta",
    "TopHolder",
]

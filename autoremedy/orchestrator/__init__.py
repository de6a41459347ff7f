"""Orchestration components for the autoremedy pipeline."""

from .aggregator import ResultAggregator
from .executor import RemediationExecutor
from .features import FeatureEnabler
from .fetcher import AlertFetcher
from .pipeline import RemediationPipeline
from .planner import RemediationPlanner

__all__ = [
    "AlertFetcher",
    "FeatureEnabler",
    "RemediationExecutor",
    "RemediationPipeline",
    "RemediationPlanner",
    "ResultAggregator",
]

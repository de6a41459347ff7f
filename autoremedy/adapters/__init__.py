"""Adapters for external systems integration."""

from .github_client import (
    AUTOMATED_SECURITY_FIXES,
    FEATURES,
    VULNERABILITY_ALERTS,
    AlertPage,
    GitHubClient,
)

__all__ = [
    "AUTOMATED_SECURITY_FIXES",
    "FEATURES",
    "VULNERABILITY_ALERTS",
    "AlertPage",
    "GitHubClient",
]

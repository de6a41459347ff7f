"""
autoremedy: automated remediation of Dependabot alerts

autoremedy turns a repository's open Dependabot alerts into pull requests:
- Enables vulnerability alerts and automated security fixes when missing
- Fetches every alert, following pagination
- Deduplicates alerts into one task per package and manifest
- Opens one pull request per task and reports a run summary

Usage:
    from autoremedy import RemediationPipeline
    
    # Or use CLI:
    $ autoremedy run octo/app --base-branch main --no-dry-run
"""

__version__ = "0.3.0"

# Core functionality
from .config import get_settings
from .logging import get_logger

# Main pipeline class for programmatic use
from .orchestrator.pipeline import RemediationPipeline

__all__ = ["RemediationPipeline", "get_settings", "get_logger", "__version__"]

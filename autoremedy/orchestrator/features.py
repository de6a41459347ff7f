"""Idempotent enablement of the repository's dependency scanning features."""

from typing import Dict, Tuple

from ..adapters.github_client import FEATURES, GitHubClient
from ..exceptions import FeatureEnablementError, GitHubError, NotFoundError, PermissionDeniedError
from ..logging import get_logger
from ..models.alerts import Repository
from ..models.tasks import FeatureState

logger = get_logger(__name__)


class FeatureEnabler:
    """Ensures vulnerability alerts and automated security fixes are on.

    The current status is queried first and the enabling call is only made
    when the feature is off, so repeated calls never re-enable anything.
    Permission problems degrade the feature to ``unsupported`` instead of
    aborting the run. Any other failure raises FeatureEnablementError.
    """
    
    def __init__(self, client: GitHubClient, *, dry_run: bool = False):
        self.client = client
        self.dry_run = dry_run
        self._states: Dict[Tuple[Repository, str], FeatureState] = {}
    
    async def ensure(self, repository: Repository, feature: str) -> FeatureState:
        """Make sure ``feature`` is enabled and return its state."""
        cache_key = (repository, feature)
        if cache_key in self._states:
            return self._states[cache_key]
        
        state = await self._ensure(repository, feature)
        self._states[cache_key] = state
        return state
    
    async def ensure_all(self, repository: Repository) -> Dict[str, FeatureState]:
        """Ensure every scanning feature; features are independent of each other."""
        return {feature: await self.ensure(repository, feature) for feature in FEATURES}
    
    async def _ensure(self, repository: Repository, feature: str) -> FeatureState:
        try:
            try:
                enabled = await self.client.get_feature_status(repository, feature)
            except NotFoundError:
                enabled = False
            
            if enabled:
                logger.info(
                    "Feature already enabled",
                    repository=repository.full_name,
                    feature=feature,
                )
                return 'enabled'
            
            if self.dry_run:
                logger.info(
                    "DRY RUN: feature would be enabled",
                    repository=repository.full_name,
                    feature=feature,
                )
                return 'unknown'
            
            await self.client.enable_feature(repository, feature)
            return 'enabled'
        
        except PermissionDeniedError as e:
            logger.warning(
                "Feature cannot be configured with this token, continuing degraded",
                repository=repository.full_name,
                feature=feature,
                error=str(e),
            )
            return 'unsupported'
        except GitHubError as e:
            logger.error(
                "Feature enablement failed",
                repository=repository.full_name,
                feature=feature,
                error=str(e),
                error_kind=e.kind,
            )
            raise FeatureEnablementError(feature, e) from e

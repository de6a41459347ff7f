"""Paginated retrieval of a repository's alerts."""

from typing import List, Optional

from ..adapters.github_client import GitHubClient
from ..exceptions import AlertFetchError, AlertParseError, GitHubError
from ..logging import get_logger
from ..models.alerts import Alert, Repository

logger = get_logger(__name__)


class AlertFetcher:
    """Follows pagination until the service reports no further page."""
    
    def __init__(self, client: GitHubClient):
        self.client = client
    
    async def fetch_all(self, repository: Repository) -> List[Alert]:
        """Return every alert in service order. Raises AlertFetchError on any failure."""
        alerts: List[Alert] = []
        cursor: Optional[str] = None
        page_count = 0
        
        try:
            while True:
                page = await self.client.list_alerts(repository, cursor)
                page_count += 1
                alerts.extend(page.alerts)
                
                logger.debug(
                    "Fetched alert page",
                    repository=repository.full_name,
                    page=page_count,
                    page_size=len(page.alerts),
                )
                
                cursor = page.next_cursor
                if not cursor:
                    break
        
        except (GitHubError, AlertParseError) as e:
            logger.error(
                "Alert fetch failed",
                repository=repository.full_name,
                page=page_count + 1,
                error=str(e),
            )
            raise AlertFetchError(repository.full_name, e) from e
        
        logger.info(
            f"Fetched {len(alerts)} alerts",
            repository=repository.full_name,
            pages=page_count,
        )
        return alerts

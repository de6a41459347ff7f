"""GitHub REST client for the operations the remediation engine consumes."""

import asyncio
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional
from urllib.parse import quote

import aiohttp
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from ..config import Settings, get_settings
from ..exceptions import (
    ConflictError,
    FatalError,
    GitHubError,
    NotApplicableError,
    NotFoundError,
    PermissionDeniedError,
    RateLimitedError,
    TransientError,
    ValidationFailedError,
)
from ..logging import get_logger, log_api_call
from ..models.alerts import Alert, Repository
from ..models.tasks import SecurityUpdate

logger = get_logger(__name__)

VULNERABILITY_ALERTS = "vulnerability-alerts"
AUTOMATED_SECURITY_FIXES = "automated-security-fixes"
FEATURES = (VULNERABILITY_ALERTS, AUTOMATED_SECURITY_FIXES)

_LINK_NEXT = re.compile(r'<([^>]+)>\s*;\s*rel="next"')


@dataclass
class ApiResponse:
    """A successful API response."""

    status: int
    data: Any
    headers: Mapping[str, str] = field(default_factory=dict)


@dataclass
class AlertPage:
    """One page of alerts and the cursor of the next page, if any."""

    alerts: List[Alert]
    next_cursor: Optional[str] = None


def next_page_url(link_header: Optional[str]) -> Optional[str]:
    """Extract the rel="next" URL from a Link header."""
    if not link_header:
        return None
    match = _LINK_NEXT.search(link_header)
    return match.group(1) if match else None


def classify_error(status: int, headers: Mapping[str, str], message: str) -> GitHubError:
    """Map an HTTP failure onto the error taxonomy."""
    retry_after = _retry_after(headers)

    if status == 429:
        return RateLimitedError(message, status, retry_after)
    if status == 403:
        if (
            headers.get("X-RateLimit-Remaining") == "0"
            or retry_after is not None
            or "rate limit" in message.lower()
        ):
            return RateLimitedError(message, status, retry_after)
        return PermissionDeniedError(message, status)
    if status == 401:
        return FatalError(message, status)
    if status == 404:
        return NotFoundError(message, status)
    if status == 409:
        return ConflictError(message, status)
    if status >= 500:
        return TransientError(message, status)
    return ValidationFailedError(message, status)


def _retry_after(headers: Mapping[str, str]) -> Optional[float]:
    value = headers.get("Retry-After")
    if value is None:
        return None
    try:
        return float(value)
    except ValueError:
        return None


class GitHubClient:
    """Async GitHub REST client.

    Each public method is one logical operation. Failures are raised as
    ``GitHubError`` subclasses; rate-limited and transient failures are
    retried with exponential backoff, never sooner than a Retry-After the
    server asked for, before being raised.
    """

    def __init__(
        self,
        token: Optional[str] = None,
        *,
        base_url: Optional[str] = None,
        settings: Optional[Settings] = None,
        session: Optional[aiohttp.ClientSession] = None,
    ):
        """Initialize the GitHub client."""
        self.settings = settings or get_settings()
        self._token = token or self.settings.github_token
        self._base_url = (base_url or self.settings.github_api_url).rstrip('/')
        self._session = session
        self._owns_session = session is None
        self._backoff = wait_exponential(
            multiplier=self.settings.retry_min_wait,
            min=self.settings.retry_min_wait,
            max=self.settings.retry_max_wait,
        )

        if not self._token:
            raise FatalError("GitHub token not configured (set GITHUB_TOKEN)")

    async def __aenter__(self) -> "GitHubClient":
        await self.start()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None:
        await self.close()

    async def start(self) -> None:
        """Open the HTTP session."""
        if self._session is None:
            self._session = aiohttp.ClientSession(
                headers={
                    "Accept": "application/vnd.github+json",
                    "Authorization": f"Bearer {self._token}",
                    "X-GitHub-Api-Version": self.settings.github_api_version,
                    "User-Agent": self.settings.user_agent,
                },
                timeout=aiohttp.ClientTimeout(total=self.settings.request_timeout),
            )

    async def close(self) -> None:
        """Close the HTTP session if this client opened it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
            self._session = None

    def _url(self, path_or_url: str) -> str:
        if path_or_url.startswith(("http://", "https://")):
            return path_or_url
        return f"{self._base_url}{path_or_url}"

    def _wait(self, retry_state: RetryCallState) -> float:
        """Exponential backoff, stretched to the server's Retry-After when it sent one."""
        backoff = self._backoff(retry_state)
        error = retry_state.outcome.exception() if retry_state.outcome else None
        if isinstance(error, RateLimitedError) and error.retry_after is not None:
            return max(backoff, min(error.retry_after, self.settings.retry_after_max_wait))
        return backoff

    async def request(
        self,
        method: str,
        path_or_url: str,
        *,
        params: Optional[Dict[str, Any]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> ApiResponse:
        """Make a call, retrying rate-limited and transient failures."""
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self.settings.retry_attempts),
            wait=self._wait,
            retry=retry_if_exception_type(TransientError),
            reraise=True,
        )
        async for attempt in retrying:
            with attempt:
                return await self._send(
                    method,
                    path_or_url,
                    params=params,
                    json=json,
                    attempt=attempt.retry_state.attempt_number,
                )
        raise AssertionError("unreachable")

    async def _send(
        self,
        method: str,
        path_or_url: str,
        *,
        params: Optional[Dict[str, Any]],
        json: Optional[Dict[str, Any]],
        attempt: int,
    ) -> ApiResponse:
        if self._session is None:
            await self.start()
        assert self._session is not None

        url = self._url(path_or_url)
        try:
            async with self._session.request(method, url, params=params, json=json) as response:
                data = await self._read_body(response)
                log_api_call(
                    logger,
                    method=method,
                    path=response.url.path,
                    status=response.status,
                    attempt=attempt,
                )

                if 200 <= response.status < 300:
                    return ApiResponse(response.status, data, dict(response.headers))

                message = ""
                if isinstance(data, dict):
                    message = str(data.get("message", ""))
                error = classify_error(response.status, response.headers, message or response.reason or "")
                if isinstance(error, TransientError):
                    logger.warning(
                        "GitHub call failed, may retry",
                        method=method,
                        path=response.url.path,
                        status=response.status,
                        attempt=attempt,
                        error_kind=error.kind,
                    )
                raise error

        except asyncio.TimeoutError as e:
            raise TransientError(f"Request timed out: {method} {url}") from e
        except aiohttp.ClientConnectorError as e:
            # Refused connection or DNS failure
            raise FatalError(f"Cannot reach GitHub: {e}") from e
        except (aiohttp.ServerDisconnectedError, aiohttp.ClientPayloadError, aiohttp.ClientOSError) as e:
            raise TransientError(f"Connection dropped: {e}") from e
        except aiohttp.ClientConnectionError as e:
            raise FatalError(f"Cannot reach GitHub: {e}") from e

    @staticmethod
    async def _read_body(response: aiohttp.ClientResponse) -> Any:
        if response.status == 204:
            return None
        if response.content_type == "application/json":
            try:
                return await response.json()
            except ValueError as e:
                error_cls = TransientError if response.status >= 500 else ValidationFailedError
                raise error_cls(f"Malformed JSON response: {e}", response.status) from e
        text = await response.text()
        return {"message": text} if text else None

    # Feature enablement

    def _feature_path(self, repository: Repository, feature: str) -> str:
        if feature not in FEATURES:
            raise ValueError(f"Unknown feature: {feature}")
        return f"/repos/{repository.owner}/{repository.name}/{feature}"

    async def get_feature_status(self, repository: Repository, feature: str) -> bool:
        """Return whether ``feature`` is enabled. Raises NotFoundError when not configured."""
        response = await self.request("GET", self._feature_path(repository, feature))
        if feature == VULNERABILITY_ALERTS:
            # 204 means enabled; a disabled repository answers 404
            return response.status == 204
        return bool((response.data or {}).get("enabled", False))

    async def enable_feature(self, repository: Repository, feature: str) -> None:
        """Turn ``feature`` on for the repository."""
        await self.request("PUT", self._feature_path(repository, feature))
        logger.info("Feature enabled", repository=repository.full_name, feature=feature)

    # Alerts

    async def list_alerts(
        self,
        repository: Repository,
        cursor: Optional[str] = None,
    ) -> AlertPage:
        """Fetch one page of Dependabot alerts."""
        if cursor:
            response = await self.request("GET", cursor)
        else:
            response = await self.request(
                "GET",
                f"/repos/{repository.owner}/{repository.name}/dependabot/alerts",
                params={
                    "state": self.settings.alert_state,
                    "per_page": self.settings.alert_page_size,
                },
            )

        items = response.data or []
        if not isinstance(items, list):
            raise ValidationFailedError(
                f"Unexpected alerts payload of type {type(items).__name__}",
                response.status,
            )

        return AlertPage(
            alerts=[Alert.from_api(item) for item in items],
            next_cursor=next_page_url(response.headers.get("Link")),
        )

    # Branches, updates and pull requests

    async def get_branch_sha(self, repository: Repository, branch: str) -> str:
        """Resolve the head commit of ``branch``."""
        response = await self.request(
            "GET",
            f"/repos/{repository.owner}/{repository.name}/git/ref/heads/{quote(branch)}",
        )
        try:
            return response.data["object"]["sha"]
        except (KeyError, TypeError):
            raise ValidationFailedError(f"Malformed ref payload for {branch}", response.status) from None

    async def create_branch(self, repository: Repository, branch: str, sha: str) -> None:
        """Create ``branch`` at ``sha``. Raises ConflictError when it already exists."""
        try:
            await self.request(
                "POST",
                f"/repos/{repository.owner}/{repository.name}/git/refs",
                json={"ref": f"refs/heads/{branch}", "sha": sha},
            )
        except ValidationFailedError as e:
            if "already exists" in e.message.lower():
                raise ConflictError(e.message, e.status) from e
            raise

    async def create_security_update(
        self,
        repository: Repository,
        ecosystem: str,
        manifest_path: str,
        package_name: str,
        branch: str,
    ) -> SecurityUpdate:
        """Ask the platform to push a fix for one manifest onto ``branch``.

        Raises NotApplicableError when no fix is available.
        """
        path = self.settings.security_update_path.format(
            owner=repository.owner, repo=repository.name
        )
        try:
            response = await self.request(
                "POST",
                path,
                json={
                    "package_ecosystem": ecosystem,
                    "manifest_path": manifest_path,
                    "package_name": package_name,
                    "branch": branch,
                },
            )
        except (NotFoundError, ValidationFailedError) as e:
            raise NotApplicableError(e.message or "No fix available", e.status) from e

        data = response.data or {}
        if not data.get("fix_available", True):
            raise NotApplicableError(
                data.get("message") or f"No fix available for {package_name}",
                response.status,
            )
        return SecurityUpdate(
            branch=data.get("branch", branch),
            commit_sha=data.get("commit_sha"),
            target_version=data.get("target_version"),
        )

    async def create_pull_request(
        self,
        repository: Repository,
        head: str,
        base: str,
        title: str,
        body: str,
    ) -> str:
        """Open a pull request and return its URL."""
        response = await self.request(
            "POST",
            f"/repos/{repository.owner}/{repository.name}/pulls",
            json={"title": title, "head": head, "base": base, "body": body},
        )
        return response.data["html_url"]

    async def find_pull_request(self, repository: Repository, head: str) -> Optional[str]:
        """Return the URL of the open pull request for ``head``, if there is one."""
        response = await self.request(
            "GET",
            f"/repos/{repository.owner}/{repository.name}/pulls",
            params={"head": f"{repository.owner}:{head}", "state": "open"},
        )
        pulls = response.data or []
        if pulls:
            return pulls[0]["html_url"]
        return None

    async def get_rate_limit(self) -> Dict[str, Any]:
        """Return the core rate limit of the token."""
        response = await self.request("GET", "/rate_limit")
        return (response.data or {}).get("resources", {}).get("core", {})


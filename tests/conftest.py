"""Shared fixtures: an in-memory GitHub and alert builders."""

import asyncio
from typing import Any, Callable, Dict, List, Optional

import pytest

from autoremedy.adapters.github_client import (
    AUTOMATED_SECURITY_FIXES,
    VULNERABILITY_ALERTS,
    AlertPage,
)
from autoremedy.config import Settings
from autoremedy.exceptions import ConflictError, NotFoundError, ValidationFailedError
from autoremedy.models.alerts import Advisory, Alert, Dependency, Repository
from autoremedy.models.runs import RunConfig
from autoremedy.models.tasks import SecurityUpdate

REPO = Repository(owner="octo", name="app")


class FakeGitHub:
    """Stands in for GitHubClient; records every call.
    
    Failures are scripted by putting exceptions in the ``*_errors`` maps.
    """
    
    def __init__(self) -> None:
        # None means "not configured" (404)
        self.features: Dict[str, Optional[bool]] = {
            VULNERABILITY_ALERTS: True,
            AUTOMATED_SECURITY_FIXES: True,
        }
        self.feature_errors: Dict[str, Exception] = {}
        self.enable_errors: Dict[str, Exception] = {}
        self.pages: List[List[Alert]] = [[]]
        self.list_error: Optional[Exception] = None
        self.base_sha = "b4se5ha"
        self.branches: Dict[str, str] = {}
        self.branch_errors: Dict[str, Exception] = {}
        self.update_errors: Dict[str, Exception] = {}
        self.update_delays: Dict[str, float] = {}
        self.target_versions: Dict[str, str] = {}
        self.pr_errors: Dict[str, Exception] = {}
        self.pulls: Dict[str, str] = {}
        self.pr_bodies: Dict[str, str] = {}
        self.pr_titles: Dict[str, str] = {}
        self.on_pull_request: Optional[Callable[[str], None]] = None
        self.calls: List[tuple] = []
    
    def count(self, operation: str) -> int:
        return sum(1 for call in self.calls if call[0] == operation)
    
    async def get_feature_status(self, repository: Repository, feature: str) -> bool:
        self.calls.append(("get_feature_status", feature))
        if feature in self.feature_errors:
            raise self.feature_errors[feature]
        state = self.features.get(feature)
        if state is None:
            raise NotFoundError("Not Found", 404)
        return state
    
    async def enable_feature(self, repository: Repository, feature: str) -> None:
        self.calls.append(("enable_feature", feature))
        if feature in self.enable_errors:
            raise self.enable_errors[feature]
        self.features[feature] = True
    
    async def list_alerts(self, repository: Repository, cursor: Optional[str] = None) -> AlertPage:
        self.calls.append(("list_alerts", cursor))
        if self.list_error is not None:
            raise self.list_error
        index = int(cursor) if cursor else 0
        next_cursor = str(index + 1) if index + 1 < len(self.pages) else None
        return AlertPage(alerts=list(self.pages[index]), next_cursor=next_cursor)
    
    async def get_branch_sha(self, repository: Repository, branch: str) -> str:
        self.calls.append(("get_branch_sha", branch))
        return self.base_sha
    
    async def create_branch(self, repository: Repository, branch: str, sha: str) -> None:
        self.calls.append(("create_branch", branch))
        if branch in self.branch_errors:
            raise self.branch_errors[branch]
        if branch in self.branches:
            raise ConflictError("Reference already exists", 422)
        self.branches[branch] = sha
    
    async def create_security_update(
        self,
        repository: Repository,
        ecosystem: str,
        manifest_path: str,
        package_name: str,
        branch: str,
    ) -> SecurityUpdate:
        self.calls.append(("create_security_update", package_name))
        if package_name in self.update_delays:
            await asyncio.sleep(self.update_delays[package_name])
        if package_name in self.update_errors:
            raise self.update_errors[package_name]
        return SecurityUpdate(
            branch=branch,
            commit_sha="f1x",
            target_version=self.target_versions.get(package_name),
        )
    
    async def create_pull_request(
        self,
        repository: Repository,
        head: str,
        base: str,
        title: str,
        body: str,
    ) -> str:
        self.calls.append(("create_pull_request", head, base))
        if head in self.pr_errors:
            raise self.pr_errors[head]
        if head in self.pulls:
            raise ValidationFailedError(f"A pull request already exists for octo:{head}.", 422)
        url = f"https://github.com/octo/app/pull/{len(self.pulls) + 1}"
        self.pulls[head] = url
        self.pr_bodies[head] = body
        self.pr_titles[head] = title
        if self.on_pull_request is not None:
            self.on_pull_request(head)
        return url
    
    async def find_pull_request(self, repository: Repository, head: str) -> Optional[str]:
        self.calls.append(("find_pull_request", head))
        return self.pulls.get(head)


def build_alert(
    id: int,
    package: str = "lodash",
    ecosystem: str = "npm",
    manifest: str = "package.json",
    severity: str = "high",
    state: str = "open",
    ghsa: Optional[str] = None,
    summary: Optional[str] = None,
    patched: Optional[str] = None,
    cve: Optional[str] = None,
    html_url: Optional[str] = None,
) -> Alert:
    return Alert(
        id=id,
        state=state,
        dependency=Dependency(package_name=package, ecosystem=ecosystem, manifest_path=manifest),
        severity=severity,
        advisory=Advisory(
            id=ghsa or f"GHSA-{id:04d}-test-xxxx",
            summary=summary or f"Vulnerability {id} in {package}",
            cve_id=cve,
        ),
        first_patched_version=patched,
        html_url=html_url,
    )


def alert_payload(number: int, **overrides: Any) -> Dict[str, Any]:
    """A Dependabot alerts API item."""
    payload: Dict[str, Any] = {
        "number": number,
        "state": "open",
        "dependency": {
            "package": {"ecosystem": "npm", "name": "lodash"},
            "manifest_path": "package.json",
            "scope": "runtime",
        },
        "security_advisory": {
            "ghsa_id": "GHSA-jf85-cpcp-j695",
            "cve_id": "CVE-2019-10744",
            "summary": "Prototype Pollution in lodash",
            "severity": "critical",
        },
        "security_vulnerability": {
            "package": {"ecosystem": "npm", "name": "lodash"},
            "severity": "critical",
            "vulnerable_version_range": "< 4.17.12",
            "first_patched_version": {"identifier": "4.17.12"},
        },
        "html_url": f"https://github.com/octo/app/security/dependabot/{number}",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def fake_github() -> FakeGitHub:
    return FakeGitHub()


@pytest.fixture
def alert_factory() -> Callable[..., Alert]:
    return build_alert


@pytest.fixture
def repository() -> Repository:
    return REPO


@pytest.fixture
def run_config() -> RunConfig:
    return RunConfig(repository=REPO, base_branch="main")


@pytest.fixture
def settings() -> Settings:
    return Settings(
        _env_file=None,
        github_token="test-token",
        retry_attempts=3,
        retry_min_wait=0,
        retry_max_wait=0,
    )


@pytest.fixture
def api_alert() -> Callable[..., Dict[str, Any]]:
    return alert_payload

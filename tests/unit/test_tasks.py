"""Unit tests for the remediation task state machine."""

import pytest

from autoremedy.exceptions import InvalidTransitionError
from autoremedy.models.tasks import RemediationTask, TaskKey


@pytest.fixture
def task(alert_factory):
    alert = alert_factory(1)
    return RemediationTask(
        key=TaskKey("lodash", "npm", "package.json"),
        source_alert_ids=frozenset({1}),
        branch_name="security-fix/npm/lodash/package.json-0000",
        severity=alert.severity,
        advisory=alert.advisory,
        alerts=(alert,),
    )


class TestRemediationTask:
    """Test cases for RemediationTask."""
    
    def test_happy_path(self, task):
        """Test walking the success path of the state machine."""
        assert task.status == "pending"
        
        assert task.transition("branch_ready") == "pending"
        assert task.transition("update_ready") == "branch_ready"
        assert task.transition("pull_request_opened") == "update_ready"
        
        assert task.is_terminal is True
        assert task.failure_reason is None
    
    def test_failure_records_reason(self, task):
        """Test that only failed tasks carry a failure reason."""
        task.transition("failed", "boom")
        
        assert task.status == "failed"
        assert task.failure_reason == "boom"
        assert task.outcome().reason == "boom"
    
    def test_skip_is_not_failure(self, task):
        """Test that skipping keeps failure_reason empty."""
        task.transition("branch_ready")
        task.transition("skipped", "no fix available")
        
        assert task.failure_reason is None
        assert task.skip_reason == "no fix available"
    
    @pytest.mark.parametrize("path", [
        ["update_ready"],
        ["pull_request_opened"],
        ["branch_ready", "update_ready", "skipped"],
        ["failed", "branch_ready"],
    ])
    def test_invalid_transitions(self, task, path):
        """Test that edges outside the state machine are rejected."""
        with pytest.raises(InvalidTransitionError):
            for status in path:
                task.transition(status)
    
    def test_outcome_requires_terminal_status(self, task):
        """Test that a pending task has no outcome yet."""
        with pytest.raises(InvalidTransitionError):
            task.outcome()
    
    def test_task_requires_source_alert(self, alert_factory):
        """Test that a task cannot exist without a source alert."""
        alert = alert_factory(1)
        with pytest.raises(ValueError, match="at least one source alert"):
            RemediationTask(
                key=TaskKey("lodash", "npm", "package.json"),
                source_alert_ids=frozenset(),
                branch_name="b",
                severity=alert.severity,
                advisory=alert.advisory,
                alerts=(),
            )

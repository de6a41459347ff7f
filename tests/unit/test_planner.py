"""Unit tests for the remediation planner."""

import re

import pytest

from autoremedy.models.tasks import TaskKey
from autoremedy.orchestrator.planner import RemediationPlanner, branch_name_for, slugify


@pytest.fixture
def planner():
    return RemediationPlanner()


class TestRemediationPlanner:
    """Test cases for RemediationPlanner."""
    
    def test_duplicate_alerts_collapse(self, planner, alert_factory):
        """Test that alerts with the same key become one task."""
        a1 = alert_factory(1, severity="medium")
        a2 = alert_factory(2, severity="high")
        
        tasks = planner.plan([a1, a2])
        
        assert len(tasks) == 1
        assert tasks[0].source_alert_ids == {1, 2}
        assert tasks[0].key == TaskKey("lodash", "npm", "package.json")
        assert tasks[0].severity == "high"
    
    def test_closed_alerts_are_discarded(self, planner, alert_factory):
        """Test that dismissed and fixed alerts never produce tasks."""
        tasks = planner.plan([
            alert_factory(1, state="dismissed"),
            alert_factory(2, package="flask", ecosystem="pip", manifest="requirements.txt", state="fixed"),
        ])
        
        assert tasks == []
    
    def test_dismissed_alert_does_not_join_group(self, planner, alert_factory):
        """Test that a dismissed duplicate is not recorded as a source alert."""
        tasks = planner.plan([
            alert_factory(1, severity="critical", state="dismissed"),
            alert_factory(2, severity="low"),
        ])
        
        assert len(tasks) == 1
        assert tasks[0].source_alert_ids == {2}
        assert tasks[0].severity == "low"
    
    def test_scenario_ordering(self, planner, alert_factory):
        """Test ordering by descending severity with duplicates merged."""
        alerts = [
            alert_factory(1, severity="medium"),
            alert_factory(2, severity="high"),
            alert_factory(3, package="flask", ecosystem="pip", manifest="requirements.txt",
                          severity="critical"),
        ]
        
        tasks = planner.plan(alerts)
        
        assert [t.package_name for t in tasks] == ["flask", "lodash"]
        assert [t.severity for t in tasks] == ["critical", "high"]
        assert [t.index for t in tasks] == [0, 1]
        assert tasks[1].source_alert_ids == {1, 2}
    
    def test_equal_severity_orders_by_package_name(self, planner, alert_factory):
        tasks = planner.plan([
            alert_factory(1, package="zod"),
            alert_factory(2, package="axios"),
            alert_factory(3, package="minimist"),
        ])
        
        assert [t.package_name for t in tasks] == ["axios", "minimist", "zod"]
    
    def test_severity_tie_uses_lowest_alert_id(self, planner, alert_factory):
        """Test that the representative advisory comes from the lowest id among equals."""
        tasks = planner.plan([
            alert_factory(9, severity="high", ghsa="GHSA-late"),
            alert_factory(4, severity="high", ghsa="GHSA-early"),
            alert_factory(2, severity="low", ghsa="GHSA-low"),
        ])
        
        assert tasks[0].advisory.id == "GHSA-early"
        assert [a.id for a in tasks[0].alerts] == [4, 9, 2]
    
    def test_same_package_in_different_manifests(self, planner, alert_factory):
        """Test that the manifest is part of the deduplication key."""
        tasks = planner.plan([
            alert_factory(1, manifest="package.json"),
            alert_factory(2, manifest="web/package.json"),
        ])
        
        assert len(tasks) == 2
        assert tasks[0].branch_name != tasks[1].branch_name
    
    def test_plan_is_deterministic(self, planner, alert_factory):
        """Test that planning twice yields identical branches and order."""
        alerts = [
            alert_factory(1, severity="low"),
            alert_factory(2, package="requests", ecosystem="pip", manifest="requirements.txt"),
            alert_factory(3, package="rails", ecosystem="rubygems", manifest="Gemfile.lock",
                          severity="critical"),
        ]
        
        first = planner.plan(alerts)
        second = planner.plan(alerts)
        
        assert [t.branch_name for t in first] == [t.branch_name for t in second]
        assert [t.key for t in first] == [t.key for t in second]
    
    def test_ecosystem_filter(self, alert_factory):
        planner = RemediationPlanner(ecosystem_filter="PIP")
        
        tasks = planner.plan([
            alert_factory(1),
            alert_factory(2, package="flask", ecosystem="pip", manifest="requirements.txt"),
        ])
        
        assert [t.package_name for t in tasks] == ["flask"]
    
    def test_min_severity(self, alert_factory):
        planner = RemediationPlanner(min_severity="high")
        
        tasks = planner.plan([
            alert_factory(1, package="a", severity="medium"),
            alert_factory(2, package="b", severity="high"),
            alert_factory(3, package="c", severity="critical"),
        ])
        
        assert [t.package_name for t in tasks] == ["c", "b"]
    
    def test_empty_input(self, planner):
        assert planner.plan([]) == []


class TestBranchNames:
    """Test cases for branch name generation."""
    
    def test_branch_name_is_ref_safe(self):
        name = branch_name_for(TaskKey("@babel/core", "npm", "apps/Web App/package.json"))
        
        assert name.startswith("security-fix/npm/babel-core/apps-web-app-package.json-")
        assert re.fullmatch(r"[a-z0-9._/-]+", name)
        assert ".." not in name
    
    def test_branch_name_is_stable(self):
        key = TaskKey("lodash", "npm", "package.json")
        
        assert branch_name_for(key) == branch_name_for(TaskKey("lodash", "npm", "package.json"))
        assert branch_name_for(key, prefix="deps").startswith("deps/npm/lodash/")
    
    def test_colliding_slugs_get_distinct_names(self):
        a = branch_name_for(TaskKey("foo.bar", "pip", "requirements.txt"))
        b = branch_name_for(TaskKey("foo_bar", "pip", "requirements.txt"))
        c = branch_name_for(TaskKey("Foo.Bar", "pip", "requirements.txt"))
        
        assert len({a, b, c}) == 3
    
    def test_slugify(self):
        assert slugify("Gemfile.lock") == "gemfile-lock"
        assert slugify("../etc") == "etc"
        assert slugify("***") == "x"
    
    def test_no_component_ends_in_lock(self):
        name = branch_name_for(TaskKey("foo.lock", "npm.lock", "yarn.lock"))
        
        assert name.startswith("security-fix/npm-lock/foo-lock/yarn-lock-")
        assert not any(part.endswith(".lock") for part in name.split("/"))

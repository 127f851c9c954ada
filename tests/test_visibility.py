import pytest

from staffboard.engine.visibility import (
    assignments_for_project,
    compute_skill_gap,
    filter_engineers_by_skill,
    filter_projects_by_status,
    parse_skill_list,
    refresh_after_mutation,
    visible_assignments,
)
from staffboard.models.entities import Engineer, Project, ProjectStatus, SkillCoverage


class TestVisibleAssignments:
    """Role-based filtering of the assignment list."""

    def test_manager_sees_everything_in_order(self, manager, mixed_assignments):
        result = visible_assignments(mixed_assignments, manager)
        assert result == mixed_assignments
        assert result is not mixed_assignments

    def test_engineer_sees_only_own_in_order(self, engineer, mixed_assignments):
        result = visible_assignments(mixed_assignments, engineer)
        assert [a.id for a in result] == ["a1", "a3"]
        assert all(a.engineer.id == engineer.id for a in result)

    def test_engineer_with_no_assignments(self, engineer, mixed_assignments):
        others = [a for a in mixed_assignments if a.engineer.id != engineer.id]
        assert visible_assignments(others, engineer) == []

    def test_empty_input(self, manager, engineer):
        assert visible_assignments([], manager) == []
        assert visible_assignments([], engineer) == []

    @pytest.mark.anyio
    async def test_refresh_reapplies_filter(self, engineer, mixed_assignments):
        """A re-fetch after a mutation never leaks other engineers' rows."""
        async def fetch():
            return mixed_assignments

        result = await refresh_after_mutation(fetch, engineer)
        assert [a.id for a in result] == ["a1", "a3"]

    def test_assignments_for_project(self, mixed_assignments):
        assert [a.id for a in assignments_for_project(mixed_assignments, "p2")] == ["a3", "a4"]


class TestSkillGap:
    def test_missing_skill_found(self):
        engineers = [Engineer(id="e1", name="Eli", email="", max_capacity=100, skills=("React",))]
        gap = compute_skill_gap({"React", "Node"}, engineers)
        assert set(gap.missing_skills) == {"Node"}
        assert gap.coverage is SkillCoverage.PARTIAL

    def test_no_required_skills(self, skilled_engineers):
        gap = compute_skill_gap(set(), skilled_engineers)
        assert gap.missing_skills == ()
        assert gap.coverage is SkillCoverage.NO_REQUIREMENTS

    def test_full_coverage_distinct_from_no_requirements(self, skilled_engineers):
        gap = compute_skill_gap(["React", "Go"], skilled_engineers)
        assert gap.missing_skills == ()
        assert gap.coverage is SkillCoverage.FULL

    def test_assigned_skills_deduplicated(self, skilled_engineers):
        gap = compute_skill_gap(["React"], skilled_engineers)
        assert gap.assigned_skills == ("React", "Node", "Python", "Go")

    def test_matching_is_case_sensitive(self, skilled_engineers):
        gap = compute_skill_gap(["react", "React"], skilled_engineers)
        assert gap.missing_skills == ("react",)

    def test_no_engineers_assigned(self):
        gap = compute_skill_gap(["Rust", "Go"], [])
        assert gap.missing_skills == ("Rust", "Go")
        assert gap.assigned_skills == ()


class TestFilters:
    def test_blank_skill_query_keeps_all(self, skilled_engineers):
        assert filter_engineers_by_skill(skilled_engineers, "  ") == skilled_engineers
        assert filter_engineers_by_skill(skilled_engineers, None) == skilled_engineers

    def test_skill_query_case_insensitive_substring(self, skilled_engineers):
        result = filter_engineers_by_skill(skilled_engineers, " reac ")
        assert [e.id for e in result] == ["e1", "e2"]

    def test_projects_by_status(self):
        projects = [
            Project(id="p1", name="A", status=ProjectStatus.ACTIVE),
            Project(id="p2", name="B", status=ProjectStatus.PLANNING),
            Project(id="p3", name="C", status=ProjectStatus.ACTIVE),
        ]
        assert [p.id for p in filter_projects_by_status(projects, "active")] == ["p1", "p3"]
        assert len(filter_projects_by_status(projects, "all")) == 3
        assert filter_projects_by_status(projects, ProjectStatus.COMPLETED) == []

    def test_unknown_status_rejected(self):
        with pytest.raises(ValueError):
            filter_projects_by_status([], "archived")

    def test_parse_skill_list(self):
        assert parse_skill_list("React, Node ,, GraphQL ") == ["React", "Node", "GraphQL"]
        assert parse_skill_list(["Go", " ", "Rust "]) == ["Go", "Rust"]
        assert parse_skill_list(None) == []

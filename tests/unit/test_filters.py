"""Unit tests for FilterState."""

import pytest

from tpdesk.errors import InvalidInputError
from tpdesk.projects.models import ProjectFilters, ProjectStatus
from tpdesk.tasks.filters import FilterState
from tpdesk.tasks.models import TaskFilters, TaskStatus


class TestFilterState:
    """Tests for FilterState."""

    def test_defaults_to_empty_filters(self):
        state = FilterState()
        assert state.current == TaskFilters()

    def test_update_returns_changed_fields(self):
        state = FilterState()
        changed = state.update(status="todo", search="bug")
        assert changed == {"status", "search"}
        assert state.current.status == TaskStatus.TODO

    def test_update_with_same_value_changes_nothing(self):
        state = FilterState(TaskFilters(status="todo"))
        assert state.update(status="todo") == set()

    def test_explicit_none_clears_field(self):
        state = FilterState(TaskFilters(status="todo", priority="high"))
        assert state.update(priority=None) == {"priority"}
        assert state.current.priority is None
        assert state.current.status == TaskStatus.TODO

    def test_reset_restores_initial_not_empty(self):
        """Test reset goes back to the caller-supplied initial filters."""
        initial = TaskFilters(project_id="p1")
        state = FilterState(initial)
        state.update(project_id=None, search="x")

        changed = state.reset()

        assert changed == {"project_id", "search"}
        assert state.current == initial

    def test_invalid_update_leaves_state_unchanged(self):
        state = FilterState(TaskFilters(status="todo"))
        with pytest.raises(InvalidInputError):
            state.update(status="finished")
        assert state.current.status == TaskStatus.TODO

    def test_project_filters(self):
        state = FilterState(filters_type=ProjectFilters)
        assert state.current == ProjectFilters()

        assert state.update(status="PLANNING", project_manager_id="u1") == {
            "status",
            "project_manager_id",
        }
        assert state.current.status == ProjectStatus.PLANNING
        with pytest.raises(InvalidInputError):
            state.update(assigned_to="u1")

        assert state.reset() == {"status", "project_manager_id"}
        assert state.current == ProjectFilters()

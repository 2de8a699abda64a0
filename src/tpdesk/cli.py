"""CLI interface for tpdesk."""

import asyncio
import sys
from collections.abc import Awaitable, Callable
from datetime import datetime
from pathlib import Path
from typing import Any, Optional

import click
from dotenv import load_dotenv
from rich.console import Console

from tpdesk import __version__
from tpdesk.config import load_config
from tpdesk.core.dashboard import Dashboard
from tpdesk.display import DisplayManager
from tpdesk.errors import TpDeskError
from tpdesk.projects.models import ProjectStatus
from tpdesk.tasks.models import TaskPriority, TaskStatus
from tpdesk.workflow.models import WorkflowStepStatus

# Load environment variables from .env file
load_dotenv()

console = Console()

TASK_STATUSES = [status.value for status in TaskStatus]
TASK_PRIORITIES = [priority.value for priority in TaskPriority]
STEP_STATUSES = [status.value for status in WorkflowStepStatus]
PROJECT_STATUSES = [status.value for status in ProjectStatus]


def _load_config(ctx: click.Context) -> dict:
    config = load_config(ctx.obj.get("config"), load_env=False)
    if ctx.obj.get("offline"):
        config["api"]["mode"] = "offline"
    return config


def _run(ctx: click.Context, action: Callable[[Dashboard, DisplayManager], Awaitable[None]]) -> None:
    """Run an async action against an initialized dashboard; errors exit with status 1."""

    async def runner() -> None:
        async with Dashboard(_load_config(ctx)) as dashboard:
            await action(dashboard, DisplayManager(console))

    try:
        asyncio.run(runner())
    except TpDeskError as e:
        console.print(f"[red]Error:[/red] {e.message}")
        ctx.exit(1)


@click.group()
@click.version_option(version=__version__)
@click.option(
    "--config",
    type=click.Path(exists=True, path_type=Path),
    help="Path to configuration file",
)
@click.option("--offline", is_flag=True, help="Use the in-memory backend instead of the API")
@click.pass_context
def cli(ctx: click.Context, config: Optional[Path], offline: bool) -> None:
    """tpdesk - engagement projects, tasks and workflows from the terminal."""
    ctx.ensure_object(dict)
    ctx.obj["config"] = config
    ctx.obj["offline"] = offline


@cli.group()
def tasks() -> None:
    """Task list, statistics and mutations."""


@tasks.command("list")
@click.option("--status", type=click.Choice(TASK_STATUSES + ["all"]), help="Filter by status")
@click.option("--priority", type=click.Choice(TASK_PRIORITIES + ["all"]), help="Filter by priority")
@click.option("--project", help="Filter by project ID")
@click.option("--assignee", help="Filter by assigned user ID")
@click.option("--search", help="Search title and description")
@click.option("--tag", "tags", multiple=True, help="Require a tag (repeatable)")
@click.option("--overdue", is_flag=True, help="Only overdue tasks")
@click.option("--page", default=1, show_default=True, help="Page number")
@click.option("--board", is_flag=True, help="Show as a kanban board")
@click.pass_context
def tasks_list(
    ctx: click.Context,
    status: Optional[str],
    priority: Optional[str],
    project: Optional[str],
    assignee: Optional[str],
    search: Optional[str],
    tags: tuple[str, ...],
    overdue: bool,
    page: int,
    board: bool,
) -> None:
    """List tasks matching the given filters."""
    filters = {
        "status": status,
        "priority": priority,
        "project_id": project,
        "assigned_to": assignee,
        "search": search,
        "tags": list(tags) or None,
        "overdue": overdue or None,
    }

    async def action(dashboard: Dashboard, display: DisplayManager) -> None:
        store = dashboard.task_store(initial_filters=filters)
        await store.load(reset_page=True)
        if page != 1 and not await store.go_to_page(page):
            display.show_error(f"Page {page} is out of range (1-{store.pagination.total_pages})")
        if store.error:
            raise TpDeskError(store.error)

        if board:
            display.show_kanban(dashboard.kanban(store).columns())
        else:
            display.show_task_table(store.snapshot())

    _run(ctx, action)


@tasks.command("stats")
@click.option("--project", help="Limit statistics to one project")
@click.pass_context
def tasks_stats(ctx: click.Context, project: Optional[str]) -> None:
    """Show aggregate task statistics."""

    async def action(dashboard: Dashboard, display: DisplayManager) -> None:
        store = dashboard.task_store(project_id=project)
        await store.load_stats()
        display.show_stats(store.stats, store.stats_error)

    _run(ctx, action)


@tasks.command("create")
@click.argument("title")
@click.option("--description", help="Task description")
@click.option("--priority", type=click.Choice(TASK_PRIORITIES), help="Task priority")
@click.option("--status", type=click.Choice(TASK_STATUSES), help="Initial status")
@click.option("--project", help="Project ID")
@click.option("--due", type=click.DateTime(formats=["%Y-%m-%d"]), help="Due date (YYYY-MM-DD)")
@click.option("--tag", "tags", multiple=True, help="Tag (repeatable)")
@click.pass_context
def tasks_create(
    ctx: click.Context,
    title: str,
    description: Optional[str],
    priority: Optional[str],
    status: Optional[str],
    project: Optional[str],
    due: Optional[datetime],
    tags: tuple[str, ...],
) -> None:
    """Create a task."""
    form: dict[str, Any] = {"title": title}
    optional = {
        "description": description,
        "priority": priority,
        "status": status,
        "project_id": project,
        "due_date": due.date() if due else None,
        "tags": list(tags) or None,
    }
    form.update({key: value for key, value in optional.items() if value is not None})

    async def action(dashboard: Dashboard, display: DisplayManager) -> None:
        store = dashboard.task_store()
        task = await store.create(form)
        display.show_task(task, title="✅ Task Created")

    _run(ctx, action)


@tasks.command("move")
@click.argument("task_id")
@click.argument("status", type=click.Choice(TASK_STATUSES))
@click.pass_context
def tasks_move(ctx: click.Context, task_id: str, status: str) -> None:
    """Move a task to another status column."""

    async def action(dashboard: Dashboard, display: DisplayManager) -> None:
        store = dashboard.task_store()
        await store.load(reset_page=True)
        board = dashboard.kanban(store)

        if store.get(task_id) is None:
            # Not on the first page; update directly
            task = await store.update_status(task_id, status)
            display.show_task(task, title="Task Moved")
            return

        if board.column_for(task_id) == TaskStatus(status):
            console.print(f"[yellow]Task {task_id} is already in {status}[/yellow]")
            return

        if not await board.move_card(task_id, status):
            raise TpDeskError(board.last_error or "Failed to update task")
        display.show_kanban(board.columns())

    _run(ctx, action)


@tasks.command("delete")
@click.argument("task_id")
@click.pass_context
def tasks_delete(ctx: click.Context, task_id: str) -> None:
    """Delete a task."""

    async def action(dashboard: Dashboard, display: DisplayManager) -> None:
        store = dashboard.task_store()
        await store.delete(task_id)
        console.print(f"[green]Deleted task {task_id}[/green]")

    _run(ctx, action)


@cli.group()
def projects() -> None:
    """Engagement projects."""


@projects.command("list")
@click.option("--status", type=click.Choice(PROJECT_STATUSES + ["all"]), help="Filter by status")
@click.option("--priority", type=click.Choice(TASK_PRIORITIES + ["all"]), help="Filter by priority")
@click.option("--search", help="Search project name and description")
@click.option("--manager", help="Filter by project manager user ID")
@click.option("--page", default=1, show_default=True, help="Page number")
@click.pass_context
def projects_list(
    ctx: click.Context,
    status: Optional[str],
    priority: Optional[str],
    search: Optional[str],
    manager: Optional[str],
    page: int,
) -> None:
    """List projects matching the given filters."""
    filters = {
        "status": status,
        "priority": priority,
        "search": search,
        "project_manager_id": manager,
    }

    async def action(dashboard: Dashboard, display: DisplayManager) -> None:
        store = dashboard.project_store(initial_filters=filters)
        await store.load(reset_page=True)
        if page != 1 and not await store.go_to_page(page):
            display.show_error(f"Page {page} is out of range (1-{store.pagination.total_pages})")
        if store.error:
            raise TpDeskError(store.error)
        display.show_project_table(store.snapshot())

    _run(ctx, action)


@projects.command("show")
@click.argument("project_id")
@click.pass_context
def projects_show(ctx: click.Context, project_id: str) -> None:
    """Show one project."""

    async def action(dashboard: Dashboard, display: DisplayManager) -> None:
        store = dashboard.project_store()
        if not await store.load_project(project_id):
            raise TpDeskError(store.project_error or "Failed to fetch project")
        display.show_project(store.project)

    _run(ctx, action)


@cli.group()
def workflow() -> None:
    """Project workflow steps and progress."""


@workflow.command("show")
@click.argument("project_id")
@click.pass_context
def workflow_show(ctx: click.Context, project_id: str) -> None:
    """Show a project's workflow and progress."""

    async def action(dashboard: Dashboard, display: DisplayManager) -> None:
        view = dashboard.workflow_view(project_id)
        if not await view.load():
            raise TpDeskError(view.error or "Failed to load workflow")
        display.show_workflow(view.snapshot())

    _run(ctx, action)


@workflow.command("step")
@click.argument("project_id")
@click.argument("step_id")
@click.option("--status", type=click.Choice(STEP_STATUSES), help="New step status")
@click.option("--notes", help="Step notes")
@click.option("--assign", help="Assign to user ID")
@click.option("--actual-days", type=float, help="Actual days spent")
@click.pass_context
def workflow_step(
    ctx: click.Context,
    project_id: str,
    step_id: str,
    status: Optional[str],
    notes: Optional[str],
    assign: Optional[str],
    actual_days: Optional[float],
) -> None:
    """Update one workflow step."""
    patch = {
        "status": status,
        "notes": notes,
        "assigned_to_id": assign,
        "actual_days": actual_days,
    }
    patch = {key: value for key, value in patch.items() if value is not None}
    if not patch:
        console.print("[yellow]Nothing to update[/yellow]")
        return

    async def action(dashboard: Dashboard, display: DisplayManager) -> None:
        view = dashboard.workflow_view(project_id)
        if not await view.load():
            raise TpDeskError(view.error or "Failed to load workflow")
        await view.update_step(step_id, patch)
        display.show_workflow(view.snapshot())

    _run(ctx, action)


def main() -> None:
    """Main entry point."""
    try:
        cli(obj={})
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted by user[/yellow]")
        sys.exit(1)


if __name__ == "__main__":
    main()

"""Display manager for rich terminal output."""

import logging
from datetime import date
from typing import Optional

from rich.columns import Columns
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from tpdesk.projects.models import Project
from tpdesk.projects.store import ProjectStoreSnapshot
from tpdesk.tasks.kanban import KanbanColumn
from tpdesk.tasks.models import Task, TaskPriority, TaskStats, TaskStatus
from tpdesk.tasks.store import TaskStoreSnapshot
from tpdesk.workflow.models import WorkflowStepStatus
from tpdesk.workflow.view import WorkflowSnapshot

logger = logging.getLogger(__name__)

STATUS_STYLES = {
    TaskStatus.TODO: "dim",
    TaskStatus.IN_PROGRESS: "yellow",
    TaskStatus.REVIEW: "cyan",
    TaskStatus.COMPLETED: "green",
    TaskStatus.BLOCKED: "red",
}

PRIORITY_STYLES = {
    TaskPriority.LOW: "dim",
    TaskPriority.MEDIUM: "white",
    TaskPriority.HIGH: "yellow",
    TaskPriority.URGENT: "bold red",
}

STEP_ICONS = {
    WorkflowStepStatus.NOT_STARTED: "[dim]○[/dim]",
    WorkflowStepStatus.IN_PROGRESS: "[yellow]◐[/yellow]",
    WorkflowStepStatus.COMPLETED: "[green]●[/green]",
    WorkflowStepStatus.BLOCKED: "[red]✗[/red]",
}


def _label(value: str) -> str:
    return value.replace("_", " ").title()


class DisplayManager:
    """
    Renders store snapshots for the terminal.

    Provides:
    - Task table with pagination footer
    - Kanban board columns
    - Statistics cards
    - Workflow stepper with progress bar
    - Project list and project detail
    """

    def __init__(self, console: Optional[Console] = None, today: Optional[date] = None):
        """
        Initialize display manager.

        Args:
            console: Rich Console instance (creates new if None)
            today: Reference date for overdue highlighting
        """
        self.console = console or Console()
        self.today = today or date.today()

    def show_error(self, message: str) -> None:
        self.console.print(f"[red]Error:[/red] {message}")

    def show_task_table(self, snapshot: TaskStoreSnapshot) -> None:
        """
        Display the current page of tasks.

        Args:
            snapshot: Task store snapshot
        """
        if snapshot.error:
            self.show_error(snapshot.error)

        if not snapshot.tasks:
            self.console.print("[yellow]No tasks match the current filters[/yellow]")
            return

        table = Table(title="📋 Tasks", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim", no_wrap=True)
        table.add_column("Title", style="white")
        table.add_column("Status", width=12)
        table.add_column("Priority", width=8)
        table.add_column("Due", width=10)
        table.add_column("Tags", style="blue")

        for task in snapshot.tasks:
            table.add_row(
                task.id,
                task.title,
                self._status_cell(task.status),
                self._priority_cell(task.priority),
                self._due_cell(task),
                ", ".join(task.tags),
            )

        self.console.print(table)
        pagination = snapshot.pagination
        self.console.print(
            f"[dim]Page {snapshot.page}/{max(pagination.total_pages, 1)} "
            f"- {pagination.total} task(s)[/dim]"
        )

    def show_kanban(self, columns: list[KanbanColumn]) -> None:
        """
        Display kanban columns side by side.

        Args:
            columns: Columns from ``KanbanBoard.columns()``
        """
        panels = []
        for column in columns:
            style = STATUS_STYLES.get(column.status, "white")
            if column.tasks:
                body = "\n".join(
                    f"[{PRIORITY_STYLES[task.priority]}]•[/{PRIORITY_STYLES[task.priority]}] "
                    f"{task.title} [dim]({task.id})[/dim]"
                    for task in column.tasks
                )
            else:
                body = "[dim](empty)[/dim]"
            panels.append(
                Panel(
                    body,
                    title=f"[bold {style}]{column.title}[/bold {style}] ({len(column.tasks)})",
                    border_style=style,
                    width=32,
                )
            )

        self.console.print(Columns(panels))

    def show_stats(self, stats: Optional[TaskStats], error: Optional[str] = None) -> None:
        """
        Display statistics cards.

        Args:
            stats: Aggregate statistics, or None if never loaded
            error: Shown instead of failing when statistics are unavailable
        """
        if error:
            self.console.print(f"[yellow]{error}[/yellow]")
        if stats is None:
            return

        cards = [
            Panel(f"[bold]{stats.total}[/bold]", title="Total", border_style="magenta"),
            Panel(f"[bold red]{stats.overdue}[/bold red]", title="Overdue", border_style="red"),
            Panel(f"[bold]{stats.due_today}[/bold]", title="Due Today", border_style="yellow"),
            Panel(f"[bold]{stats.due_this_week}[/bold]", title="This Week", border_style="blue"),
        ]
        for status in TaskStatus:
            style = STATUS_STYLES[status]
            cards.append(
                Panel(
                    f"[bold]{stats.by_status.get(status, 0)}[/bold]",
                    title=_label(status.value),
                    border_style=style,
                )
            )

        self.console.print(Columns(cards))

    def show_workflow(self, snapshot: WorkflowSnapshot) -> None:
        """
        Display workflow steps in order with a progress bar.

        Args:
            snapshot: Workflow view snapshot
        """
        if snapshot.error:
            self.show_error(snapshot.error)
        if snapshot.workflow is None:
            return

        title = snapshot.workflow.template.name if snapshot.workflow.template else "Workflow"
        table = Table(title=f"🧭 {title}", show_header=True, header_style="bold magenta")
        table.add_column("#", style="dim", width=3)
        table.add_column("", width=2)
        table.add_column("Step", style="white")
        table.add_column("Status", width=12)
        table.add_column("Assignee", style="cyan")
        table.add_column("Est. days", justify="right")
        table.add_column("Notes", style="dim")

        for step in snapshot.steps:
            table.add_row(
                str(step.order),
                STEP_ICONS[step.status],
                step.step_name,
                _label(step.status.value),
                step.assigned_to_id or "-",
                "" if step.estimated_days is None else f"{step.estimated_days:g}",
                step.notes or "",
            )

        self.console.print(table)

        progress = snapshot.progress
        if progress is None:
            return

        bar_length = 30
        filled = progress.percent_complete * bar_length // 100
        bar = "█" * filled + "░" * (bar_length - filled)
        track = "[green]on track[/green]" if progress.is_on_track else "[red]off track[/red]"
        text = (
            f"Progress: [{bar}] {progress.percent_complete}% "
            f"({progress.completed_steps}/{progress.total_steps}) - {track}"
        )
        if progress.estimated_completion_date:
            text += f"\nEstimated completion: {progress.estimated_completion_date.isoformat()}"
        self.console.print(f"[bold blue]{text}[/bold blue]")

    def show_task(self, task: Task, title: str = "Task") -> None:
        """Display a single task in a panel."""
        lines = [
            f"[bold]{task.title}[/bold]",
            f"ID: {task.id}",
            f"Status: {self._status_cell(task.status)}",
            f"Priority: {self._priority_cell(task.priority)}",
        ]
        if task.description:
            lines.append(f"\n{task.description}")
        if task.due_date:
            lines.append(f"Due: {self._due_cell(task)}")
        if task.tags:
            lines.append(f"Tags: {', '.join(task.tags)}")

        self.console.print(
            Panel("\n".join(lines), title=f"[bold green]{title}[/bold green]", border_style="green")
        )

    def show_project_table(self, snapshot: ProjectStoreSnapshot) -> None:
        """Display the current page of projects."""
        if snapshot.error:
            self.show_error(snapshot.error)

        if not snapshot.projects:
            self.console.print("[yellow]No projects match the current filters[/yellow]")
            return

        table = Table(title="📁 Projects", show_header=True, header_style="bold magenta")
        table.add_column("ID", style="dim", no_wrap=True)
        table.add_column("Project", style="white")
        table.add_column("Deliverable", style="cyan")
        table.add_column("Status", width=16)
        table.add_column("Priority", width=8)
        table.add_column("Deadline", width=10)

        for project in snapshot.projects:
            table.add_row(
                project.id,
                project.project_name,
                _label(project.deliverable_type.value) if project.deliverable_type else "",
                _label(project.status.value),
                self._priority_cell(project.priority),
                project.deadline.isoformat() if project.deadline else "",
            )

        self.console.print(table)
        pagination = snapshot.pagination
        self.console.print(
            f"[dim]Page {snapshot.page}/{max(pagination.total_pages, 1)} "
            f"- {pagination.total} project(s)[/dim]"
        )

    def show_project(self, project: Project) -> None:
        """Display a single project in a panel."""
        lines = [
            f"[bold]{project.project_name}[/bold]",
            f"ID: {project.id}",
            f"Status: {_label(project.status.value)}",
            f"Priority: {self._priority_cell(project.priority)}",
        ]
        if project.deliverable_type:
            lines.append(f"Deliverable: {_label(project.deliverable_type.value)}")
        if project.start_date or project.deadline:
            start = project.start_date.isoformat() if project.start_date else "?"
            end = project.deadline.isoformat() if project.deadline else "?"
            lines.append(f"Schedule: {start} → {end}")
        if project.project_manager_id:
            lines.append(f"Manager: {project.project_manager_id}")
        if project.budget is not None:
            lines.append(f"Budget: {project.budget:,.2f}")
        if project.description:
            lines.append(f"\n{project.description}")

        self.console.print(
            Panel("\n".join(lines), title="[bold blue]Project[/bold blue]", border_style="blue")
        )

    def _status_cell(self, status: TaskStatus) -> str:
        style = STATUS_STYLES[status]
        return f"[{style}]{_label(status.value)}[/{style}]"

    def _priority_cell(self, priority: TaskPriority) -> str:
        style = PRIORITY_STYLES[priority]
        return f"[{style}]{_label(priority.value)}[/{style}]"

    def _due_cell(self, task: Task) -> str:
        if task.due_date is None:
            return ""
        if task.is_overdue(self.today):
            return f"[bold red]{task.due_date.isoformat()}[/bold red]"
        return task.due_date.isoformat()

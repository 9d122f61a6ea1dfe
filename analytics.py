"""
Dashboard analytics over tasks and projects.

Each call re-reads the store. The sub-queries are independent reads and run
side by side, so the figures are a point-in-time snapshot without
cross-query isolation.
"""
from functools import partial
from typing import Any, Callable

import anyio

from logging_setup import get_logger
from repositories import ProjectRepository, TaskRepository
from schemas import ProjectStatus, TaskStatus

logger = get_logger(__name__)

RECENT_TASKS = 5


def completion_rate(completed: int, total: int) -> float:
    if total <= 0:
        return 0
    return round(completed / total * 100, 1)


class AnalyticsAggregator:
    def __init__(self, tasks: TaskRepository, projects: ProjectRepository):
        self.tasks = tasks
        self.projects = projects

    async def dashboard(self) -> dict:
        queries: dict[str, Callable[[], Any]] = {
            "totalTasks": self.tasks.count,
            "completedTasks": partial(self.tasks.count, {"status": TaskStatus.COMPLETED.value}),
            "totalProjects": self.projects.count,
            "activeProjects": partial(self.projects.count, {"status": ProjectStatus.ACTIVE.value}),
            "tasksByStatus": partial(self.tasks.count_by, "status"),
            "tasksByPriority": partial(self.tasks.count_by, "priority"),
            "recentTasks": partial(self.tasks.recent, RECENT_TASKS),
        }
        results: dict[str, Any] = {}

        async def run(name: str, query: Callable[[], Any]) -> None:
            results[name] = await anyio.to_thread.run_sync(query)

        async with anyio.create_task_group() as tg:
            for name, query in queries.items():
                tg.start_soon(run, name, query)

        logger.debug("dashboard_computed", total_tasks=results["totalTasks"])
        return {
            "summary": {
                "totalTasks": results["totalTasks"],
                "completedTasks": results["completedTasks"],
                "totalProjects": results["totalProjects"],
                "activeProjects": results["activeProjects"],
                "completionRate": completion_rate(results["completedTasks"], results["totalTasks"]),
            },
            "charts": {
                "tasksByStatus": results["tasksByStatus"],
                "tasksByPriority": results["tasksByPriority"],
            },
            "recentTasks": results["recentTasks"],
        }

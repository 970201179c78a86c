from typing import Iterable, List
from .schema import Task

PRIORITY_ORDER = {
    "high": 3,
    "medium": 2,
    "low": 1,
}


def rank_tasks(tasks: Iterable[Task]) -> List[Task]:
    """Order tasks by priority tier, then impact score, both descending.

    Unknown priorities sort below low. Returns a new list.
    """
    return sorted(
        tasks,
        key=lambda task: (
            PRIORITY_ORDER.get(task.get("priority"), 0),
            task.get("impact_score") or 0,
        ),
        reverse=True,
    )


def completion_rate(tasks: Iterable[Task]) -> float:
    tasks = list(tasks)
    if not tasks:
        return 0.0
    completed = sum(1 for task in tasks if task.get("completed"))
    return completed / len(tasks) * 100

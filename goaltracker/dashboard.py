import asyncio
import copy
import logging
from typing import Any, Dict, Optional
from .errors import user_message
from .hierarchy import organize_goal_hierarchy
from .ranking import completion_rate
from .schema import DashboardState, GoalPatch, TaskPatch, validate_patch
from .services import GoalService, TaskService, AchievementService

logger = logging.getLogger(__name__)

LOAD_ERROR = "Failed to load data. Please try again later."

PENDING = "pending"
COMMITTED = "committed"
FAILED = "failed"


class Dashboard:
    """Per-session view of one user's goals, tasks and progress.

    `snapshot()` is a synchronous copy of the current state; `refresh()`
    reloads everything from storage. Task and goal edits are applied
    locally first and rolled back if the write fails; edits that break
    field limits raise ValidationError before anything changes.
    """

    def __init__(self, store, user_id: Optional[str]):
        self.user_id = user_id
        self.goal_service = GoalService(store)
        self.task_service = TaskService(store)
        self.achievement_service = AchievementService(store)

        self._goal_rows = []
        self._tasks = []
        self._achievements = []
        self._milestones = []
        self._streak = None
        self._mutations: Dict[str, str] = {}
        self.loading = False
        self.error: Optional[str] = None

    def snapshot(self) -> DashboardState:
        return copy.deepcopy({
            "goals": organize_goal_hierarchy(self._goal_rows),
            "tasks": self._tasks,
            "achievements": self._achievements,
            "milestones": self._milestones,
            "streak": self._streak,
            "completion_rate": completion_rate(self._tasks),
            "loading": self.loading,
            "error": self.error,
            "mutations": self._mutations,
        })

    async def refresh(self) -> Dict[str, Any]:
        if not self.user_id:
            self.loading = False
            return {"status": "success", "data": self.snapshot()}

        self.loading = True
        self.error = None
        logger.info(f"Fetching dashboard data for user {self.user_id}")
        try:
            goals, tasks, achievements, milestones, streak = await asyncio.gather(
                asyncio.to_thread(self.goal_service.get_goals, self.user_id),
                asyncio.to_thread(self.task_service.get_tasks, self.user_id),
                asyncio.to_thread(self.achievement_service.get_achievements, self.user_id),
                asyncio.to_thread(self.achievement_service.get_milestones, self.user_id),
                asyncio.to_thread(self.achievement_service.get_streak, self.user_id),
            )
        except Exception as e:
            logger.error(f"Error fetching dashboard data: {e}")
            self.error = LOAD_ERROR
            return {"status": "error", "message": LOAD_ERROR}
        finally:
            self.loading = False

        self._goal_rows = goals
        self._tasks = tasks
        self._achievements = achievements
        self._milestones = milestones
        self._streak = streak
        self._mutations = {}
        return {"status": "success", "data": self.snapshot()}

    async def _mutate(self, rows, record_id: str, updates: Dict[str, Any], write) -> Dict[str, Any]:
        index = next((i for i, row in enumerate(rows) if row["id"] == record_id), None)
        if index is None:
            return {"status": "error", "message": "Record not found"}

        committed = rows[index]
        rows[index] = {**committed, **updates}
        self._mutations[record_id] = PENDING
        try:
            saved = await asyncio.to_thread(write, self.user_id, record_id, updates)
        except Exception as e:
            logger.error(f"Write for {record_id} failed, reverting: {e}")
            for i, row in enumerate(rows):
                if row["id"] == record_id:
                    rows[i] = committed
            self._mutations[record_id] = FAILED
            self.error = user_message(e)
            return {"status": "error", "message": self.error, "data": self.snapshot()}

        for i, row in enumerate(rows):
            if row["id"] == record_id:
                rows[i] = saved
        self._mutations[record_id] = COMMITTED
        return {"status": "success", "data": self.snapshot()}

    async def update_task(self, task_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        updates = TaskService.normalize_state(validate_patch(TaskPatch, updates))
        return await self._mutate(self._tasks, task_id, updates,
                                  self.task_service.update_task)

    async def update_goal(self, goal_id: str, updates: Dict[str, Any]) -> Dict[str, Any]:
        updates = validate_patch(GoalPatch, updates)
        return await self._mutate(self._goal_rows, goal_id, updates, self.goal_service.update_goal)

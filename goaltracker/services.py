"""Record services for goals, tasks, achievements, milestones and profiles.

Services own the data-model invariants; storage access goes through a
RecordStore (or anything with the same methods).
"""
import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional
from .errors import NotFoundError, ValidationError
from .hierarchy import find_cycle_parent
from .schema import Goal, Task, Achievement, Milestone, Streak

logger = logging.getLogger(__name__)


class GoalService:
    def __init__(self, store):
        self.store = store

    def get_goals(self, user_id: str) -> List[Goal]:
        return self.store.select("goals", user_id)

    def get_goal(self, user_id: str, goal_id: str) -> Goal:
        goal = self.store.select_one("goals", user_id, id=goal_id)
        if not goal:
            raise NotFoundError("Goal not found")
        return goal

    def _check_parent(self, user_id: str, goal_id: Optional[str], parent_id: str) -> None:
        if goal_id and parent_id == goal_id:
            raise ValidationError("A goal cannot be its own parent")
        goals = self.get_goals(user_id)
        if not any(g["id"] == parent_id for g in goals):
            raise ValidationError("Parent goal not found")
        if goal_id and find_cycle_parent(goals, goal_id, parent_id):
            raise ValidationError("That parent would create a loop in your goal hierarchy")

    def create_goal(self, user_id: str, goal: Dict[str, Any]) -> Goal:
        if goal.get("parent_goal_id"):
            self._check_parent(user_id, None, goal["parent_goal_id"])
        created = self.store.insert("goals", user_id, goal)
        logger.info(f"Created goal '{created['title']}' for user {user_id}")
        return created

    def update_goal(self, user_id: str, goal_id: str, updates: Dict[str, Any]) -> Goal:
        if updates.get("parent_goal_id"):
            self._check_parent(user_id, goal_id, updates["parent_goal_id"])
        updated = self.store.update("goals", user_id, goal_id, updates)
        if not updated:
            raise NotFoundError("Goal not found")
        return updated

    def delete_goal(self, user_id: str, goal_id: str) -> bool:
        # Child goals and linked tasks keep existing; their links are nulled by storage
        if not self.store.delete("goals", user_id, goal_id):
            raise NotFoundError("Goal not found")
        return True


class TaskService:
    def __init__(self, store):
        self.store = store

    def get_tasks(self, user_id: str) -> List[Task]:
        return self.store.select("tasks", user_id)

    def get_task(self, user_id: str, task_id: str) -> Task:
        task = self.store.select_one("tasks", user_id, id=task_id)
        if not task:
            raise NotFoundError("Task not found")
        return task

    @staticmethod
    def normalize_state(fields: Dict[str, Any]) -> Dict[str, Any]:
        fields = dict(fields)
        if fields.get("completed"):
            fields["in_progress"] = False
        elif fields.get("in_progress"):
            # starting work on a finished task reopens it
            fields["completed"] = False
        return fields

    def _check_goal(self, user_id: str, goal_id: Optional[str]) -> None:
        if goal_id and not self.store.select_one("goals", user_id, id=goal_id):
            raise ValidationError("Linked goal not found")

    def create_task(self, user_id: str, task: Dict[str, Any]) -> Task:
        self._check_goal(user_id, task.get("goal_id"))
        fields = {"completed": False, "in_progress": False, **task}
        created = self.store.insert("tasks", user_id, self.normalize_state(fields))
        logger.info(f"Created task '{created['title']}' for user {user_id}")
        return created

    def update_task(self, user_id: str, task_id: str, updates: Dict[str, Any]) -> Task:
        self._check_goal(user_id, updates.get("goal_id"))
        updated = self.store.update("tasks", user_id, task_id, self.normalize_state(updates))
        if not updated:
            raise NotFoundError("Task not found")
        return updated

    def delete_task(self, user_id: str, task_id: str) -> bool:
        if not self.store.delete("tasks", user_id, task_id):
            raise NotFoundError("Task not found")
        return True


class AchievementService:
    """Achievements, milestones and the activity streak."""

    def __init__(self, store):
        self.store = store

    def get_achievements(self, user_id: str) -> List[Achievement]:
        return self.store.select("achievements", user_id)

    @staticmethod
    def _normalize_earned(fields: Dict[str, Any]) -> Dict[str, Any]:
        fields = dict(fields)
        if fields.get("earned") is False:
            fields["earned_date"] = None
        elif fields.get("earned") and not fields.get("earned_date"):
            fields["earned_date"] = date.today()
        return fields

    def create_achievement(self, user_id: str, achievement: Dict[str, Any]) -> Achievement:
        if achievement.get("earned_date") and not achievement.get("earned"):
            raise ValidationError("An earned date needs the achievement to be earned")
        fields = self._normalize_earned({"earned": False, **achievement})
        return self.store.insert("achievements", user_id, fields)

    def update_achievement(self, user_id: str, achievement_id: str, updates: Dict[str, Any]) -> Achievement:
        if updates.get("earned_date") and "earned" not in updates:
            current = self.store.select_one("achievements", user_id, id=achievement_id)
            if current and not current.get("earned"):
                raise ValidationError("An earned date needs the achievement to be earned")
        updated = self.store.update("achievements", user_id, achievement_id, self._normalize_earned(updates))
        if not updated:
            raise NotFoundError("Achievement not found")
        return updated

    def get_milestones(self, user_id: str) -> List[Milestone]:
        return self.store.select("milestones", user_id)

    def create_milestone(self, user_id: str, milestone: Dict[str, Any]) -> Milestone:
        return self.store.insert("milestones", user_id, milestone)

    def update_milestone(self, user_id: str, milestone_id: str, updates: Dict[str, Any]) -> Milestone:
        updated = self.store.update("milestones", user_id, milestone_id, updates)
        if not updated:
            raise NotFoundError("Milestone not found")
        return updated

    def get_streak(self, user_id: str) -> Optional[Streak]:
        row = self.store.select_one("user_preferences", user_id)
        if not row:
            return None
        return {
            "current": row.get("streak_current") or 0,
            "best": row.get("streak_best") or 0,
            "last_updated": row.get("streak_last_updated"),
            "user_id": user_id,
        }

    def update_streak(self, user_id: str, streak: Dict[str, Any]) -> Streak:
        self.store.upsert("user_preferences", user_id, {
            "streak_current": streak.get("current", 0),
            "streak_best": streak.get("best", 0),
            "streak_last_updated": streak.get("last_updated"),
        })
        return self.get_streak(user_id)

    def record_activity(self, user_id: str, day: Optional[date] = None) -> Streak:
        """Count `day` as active: extend, keep or restart the streak."""
        day = day or date.today()
        streak = self.get_streak(user_id) or {"current": 0, "best": 0, "last_updated": None}
        last = streak["last_updated"]
        if last == day:
            return {**streak, "user_id": user_id}
        if last is not None and last == day - timedelta(days=1):
            current = streak["current"] + 1
        else:
            current = 1
        return self.update_streak(user_id, {
            "current": current,
            "best": max(streak["best"], current),
            "last_updated": day,
        })


class PreferenceService:
    """Onboarding profile stored on the user_preferences row."""

    SECTIONS = ("personality", "preferences", "goals", "motivators")

    def __init__(self, store):
        self.store = store

    def get_preferences(self, user_id: str) -> Dict[str, Any]:
        row = self.store.select_one("user_preferences", user_id) or {}
        return {section: row.get(section) or {} for section in self.SECTIONS}

    def save_preferences(self, user_id: str, preferences: Dict[str, Any]) -> Dict[str, Any]:
        self.store.upsert("user_preferences", user_id, {
            section: preferences.get(section) or {} for section in self.SECTIONS
        })
        logger.info(f"Saved preferences for user {user_id}")
        return self.get_preferences(user_id)

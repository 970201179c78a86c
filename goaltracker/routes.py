from fastapi import APIRouter, Depends
from .auth import get_current_user, ensure_same_user
from .checkout import create_checkout_session
from .dashboard import Dashboard
from .hierarchy import organize_goal_hierarchy
from .ranking import rank_tasks
from .schema import (
    GoalCreate, GoalPatch, TaskCreate, TaskPatch, AchievementCreate, AchievementPatch,
    MilestoneCreate, MilestonePatch, Preferences, ActivityPayload, AIRequest,
    RecommendationCreate, CheckoutRequest,
)
from .security import ai_limiter
from .services import GoalService, TaskService, AchievementService, PreferenceService
from .store import get_store
from .strategist import AIStrategist


router = APIRouter()


def get_strategist(store=Depends(get_store)) -> AIStrategist:
    return AIStrategist(store)


# ------- Goals -------
@router.get("/goals")
def list_goals(user=Depends(get_current_user), store=Depends(get_store)):
    return GoalService(store).get_goals(user["sub"])


@router.get("/goals/hierarchy")
def goal_hierarchy(user=Depends(get_current_user), store=Depends(get_store)):
    return organize_goal_hierarchy(GoalService(store).get_goals(user["sub"]))


@router.post("/goals", status_code=201)
def create_goal(payload: GoalCreate, user=Depends(get_current_user), store=Depends(get_store)):
    return GoalService(store).create_goal(user["sub"], payload.model_dump())


@router.patch("/goals/{goal_id}")
def update_goal(goal_id: str, payload: GoalPatch, user=Depends(get_current_user), store=Depends(get_store)):
    return GoalService(store).update_goal(user["sub"], goal_id, payload.model_dump(exclude_unset=True))


@router.delete("/goals/{goal_id}")
def delete_goal(goal_id: str, user=Depends(get_current_user), store=Depends(get_store)):
    GoalService(store).delete_goal(user["sub"], goal_id)
    return {"status": "success"}


# ------- Tasks -------
@router.get("/tasks")
def list_tasks(user=Depends(get_current_user), store=Depends(get_store)):
    return TaskService(store).get_tasks(user["sub"])


@router.get("/tasks/ranked")
def ranked_tasks(user=Depends(get_current_user), store=Depends(get_store)):
    return rank_tasks(TaskService(store).get_tasks(user["sub"]))


@router.post("/tasks", status_code=201)
def create_task(payload: TaskCreate, user=Depends(get_current_user), store=Depends(get_store)):
    return TaskService(store).create_task(user["sub"], payload.model_dump())


@router.patch("/tasks/{task_id}")
def update_task(task_id: str, payload: TaskPatch, user=Depends(get_current_user), store=Depends(get_store)):
    return TaskService(store).update_task(user["sub"], task_id, payload.model_dump(exclude_unset=True))


@router.delete("/tasks/{task_id}")
def delete_task(task_id: str, user=Depends(get_current_user), store=Depends(get_store)):
    TaskService(store).delete_task(user["sub"], task_id)
    return {"status": "success"}


# ------- Achievements, milestones, streak -------
@router.get("/achievements")
def list_achievements(user=Depends(get_current_user), store=Depends(get_store)):
    return AchievementService(store).get_achievements(user["sub"])


@router.post("/achievements", status_code=201)
def create_achievement(payload: AchievementCreate, user=Depends(get_current_user), store=Depends(get_store)):
    return AchievementService(store).create_achievement(user["sub"], payload.model_dump())


@router.patch("/achievements/{achievement_id}")
def update_achievement(achievement_id: str, payload: AchievementPatch,
                       user=Depends(get_current_user), store=Depends(get_store)):
    return AchievementService(store).update_achievement(
        user["sub"], achievement_id, payload.model_dump(exclude_unset=True))


@router.get("/milestones")
def list_milestones(user=Depends(get_current_user), store=Depends(get_store)):
    return AchievementService(store).get_milestones(user["sub"])


@router.post("/milestones", status_code=201)
def create_milestone(payload: MilestoneCreate, user=Depends(get_current_user), store=Depends(get_store)):
    return AchievementService(store).create_milestone(user["sub"], payload.model_dump())


@router.patch("/milestones/{milestone_id}")
def update_milestone(milestone_id: str, payload: MilestonePatch,
                     user=Depends(get_current_user), store=Depends(get_store)):
    return AchievementService(store).update_milestone(
        user["sub"], milestone_id, payload.model_dump(exclude_unset=True))


@router.get("/streak")
def get_streak(user=Depends(get_current_user), store=Depends(get_store)):
    return AchievementService(store).get_streak(user["sub"])


@router.post("/streak/activity")
def record_activity(payload: ActivityPayload, user=Depends(get_current_user), store=Depends(get_store)):
    return AchievementService(store).record_activity(user["sub"], payload.day)


# ------- Profile -------
@router.get("/preferences")
def get_preferences(user=Depends(get_current_user), store=Depends(get_store)):
    return PreferenceService(store).get_preferences(user["sub"])


@router.put("/preferences")
def save_preferences(payload: Preferences, user=Depends(get_current_user), store=Depends(get_store)):
    return PreferenceService(store).save_preferences(user["sub"], payload.model_dump())


# ------- Dashboard -------
@router.get("/dashboard")
async def dashboard(user=Depends(get_current_user), store=Depends(get_store)):
    return await Dashboard(store, user["sub"]).refresh()


# ------- AI -------
@router.post("/ai-strategist")
def ai_strategist(payload: AIRequest, user=Depends(get_current_user),
                  strategist: AIStrategist = Depends(get_strategist)):
    ensure_same_user(user, payload.userId)
    ai_limiter.check(f"{user['sub']}:ai-strategist")
    return strategist.handle(payload.model_dump())


@router.post("/recommendations", status_code=201)
def save_recommendation(payload: RecommendationCreate, user=Depends(get_current_user),
                        strategist: AIStrategist = Depends(get_strategist)):
    return strategist.save_recommendation(user["sub"], payload.model_dump())


# ------- Payments -------
@router.post("/create-checkout-session")
def checkout_session(payload: CheckoutRequest, user=Depends(get_current_user)):
    ensure_same_user(user, payload.userId)
    email = payload.customerEmail or user.get("email")
    return create_checkout_session(payload.priceId, payload.userId, email)

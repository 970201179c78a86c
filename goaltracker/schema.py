from typing import TypedDict, List, Dict, Any, Optional, Literal, ClassVar, FrozenSet, Type
from datetime import datetime, date
from pydantic import BaseModel, Field, ValidationInfo, field_validator
from pydantic import ValidationError as PydanticValidationError
from .errors import ValidationError, describe_field_errors

Priority = Literal["high", "medium", "low"]
GoalType = Literal["lifetime", "medium-term", "daily"]
RecommendationType = Literal["priority", "scheduling", "strategy"]
AIAction = Literal["prioritize", "strategy", "agent"]


# ------- Stored rows -------

class Goal(TypedDict):
    id: str
    title: str
    description: Optional[str]
    priority: Priority
    progress: int
    impact: int
    type: GoalType
    parent_goal_id: Optional[str]
    user_id: str
    created_at: datetime
    updated_at: datetime


class GoalNode(Goal):
    children: List["GoalNode"]


class Task(TypedDict):
    id: str
    title: str
    description: Optional[str]
    estimated_time: int
    impact_score: int
    priority: Priority
    completed: bool
    in_progress: bool
    goal_id: Optional[str]
    user_id: str
    created_at: datetime
    updated_at: datetime


class Achievement(TypedDict):
    id: str
    title: str
    description: Optional[str]
    earned: bool
    earned_date: Optional[date]
    user_id: str
    created_at: datetime


class Milestone(TypedDict):
    id: str
    title: str
    description: Optional[str]
    due_date: Optional[date]
    reward: Optional[str]
    progress: int
    user_id: str
    created_at: datetime
    updated_at: datetime


class Streak(TypedDict):
    current: int
    best: int
    last_updated: Optional[date]
    user_id: str


class DashboardState(TypedDict):
    goals: List[GoalNode]
    tasks: List[Task]
    achievements: List[Achievement]
    milestones: List[Milestone]
    streak: Optional[Streak]
    completion_rate: float
    loading: bool
    error: Optional[str]
    mutations: Dict[str, str]


class AgentState(TypedDict, total=False):
    user_id: str
    prompt: str
    context: str
    decision: Any
    response: str
    tasks_modified: bool


# ------- Request payloads -------

class GoalCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = ""
    priority: Priority = "medium"
    progress: int = Field(default=0, ge=0, le=100)
    impact: int = Field(default=50, ge=0, le=100)
    type: GoalType = "medium-term"
    parent_goal_id: Optional[str] = None


class PatchModel(BaseModel):
    """Partial update. Only the NULLABLE fields may be sent as an explicit null."""
    NULLABLE: ClassVar[FrozenSet[str]] = frozenset({"description"})

    @field_validator("*", mode="before")
    @classmethod
    def reject_null(cls, value, info: ValidationInfo):
        if value is None and info.field_name not in cls.NULLABLE:
            raise ValueError("may not be null")
        return value


def validate_patch(model: Type[PatchModel], updates: Dict[str, Any]) -> Dict[str, Any]:
    """Check raw update fields against `model`, keeping only the fields that were sent."""
    try:
        return model.model_validate(updates).model_dump(exclude_unset=True)
    except PydanticValidationError as e:
        raise ValidationError(describe_field_errors(e.errors())) from e


class GoalPatch(PatchModel):
    NULLABLE = frozenset({"description", "parent_goal_id"})
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    priority: Optional[Priority] = None
    progress: Optional[int] = Field(default=None, ge=0, le=100)
    impact: Optional[int] = Field(default=None, ge=0, le=100)
    type: Optional[GoalType] = None
    parent_goal_id: Optional[str] = None


class TaskCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = ""
    estimated_time: int = Field(default=30, ge=0)
    impact_score: int = Field(default=50, ge=0, le=100)
    priority: Priority = "medium"
    completed: bool = False
    in_progress: bool = False
    goal_id: Optional[str] = None


class TaskPatch(PatchModel):
    NULLABLE = frozenset({"description", "goal_id"})
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    estimated_time: Optional[int] = Field(default=None, ge=0)
    impact_score: Optional[int] = Field(default=None, ge=0, le=100)
    priority: Optional[Priority] = None
    completed: Optional[bool] = None
    in_progress: Optional[bool] = None
    goal_id: Optional[str] = None


class AchievementCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = ""
    earned: bool = False
    earned_date: Optional[date] = None


class AchievementPatch(PatchModel):
    NULLABLE = frozenset({"description", "earned_date"})
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    earned: Optional[bool] = None
    earned_date: Optional[date] = None


class MilestoneCreate(BaseModel):
    title: str = Field(min_length=1, max_length=255)
    description: Optional[str] = ""
    due_date: Optional[date] = None
    reward: Optional[str] = ""
    progress: int = Field(default=0, ge=0, le=100)


class MilestonePatch(PatchModel):
    NULLABLE = frozenset({"description", "due_date", "reward"})
    title: Optional[str] = Field(default=None, min_length=1, max_length=255)
    description: Optional[str] = None
    due_date: Optional[date] = None
    reward: Optional[str] = None
    progress: Optional[int] = Field(default=None, ge=0, le=100)


class Preferences(BaseModel):
    """Onboarding profile: free-form JSON sections."""
    personality: Dict[str, Any] = Field(default_factory=dict)
    preferences: Dict[str, Any] = Field(default_factory=dict)
    goals: Dict[str, Any] = Field(default_factory=dict)
    motivators: Dict[str, Any] = Field(default_factory=dict)


class ActivityPayload(BaseModel):
    day: Optional[date] = None


class AIRequest(BaseModel):
    userId: str = Field(min_length=1)
    action: AIAction
    tasks: Optional[List[Dict[str, Any]]] = None
    taskId: Optional[str] = None
    prompt: Optional[str] = None


class RecommendationCreate(BaseModel):
    task_id: Optional[str] = None
    recommendation_type: RecommendationType
    content: str
    reasoning: Optional[str] = ""


class CheckoutRequest(BaseModel):
    priceId: str = Field(min_length=1)
    userId: str = Field(min_length=1)
    customerEmail: Optional[str] = None


# ------- Structured model output -------

class TaskDraft(BaseModel):
    """Task fields the assistant wants to create."""
    title: str = Field(description="Short task title")
    description: str = Field(default="", description="What the task involves")
    estimated_time: int = Field(default=30, ge=0, description="Estimated time in minutes")
    impact_score: int = Field(default=50, ge=0, le=100, description="Impact score between 0 and 100")
    priority: Priority = Field(default="medium", description="high, medium or low")


class AgentDecision(BaseModel):
    """The assistant's answer to a user prompt."""
    response: str = Field(description="Concise, action-oriented reply shown to the user")
    create_task: bool = Field(default=False, description="True only when the user asked for a new task")
    task: Optional[TaskDraft] = Field(default=None, description="The task to create when create_task is true")

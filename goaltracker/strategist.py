import json
import logging
import re
from typing import Any, Dict, List, Optional
from langchain_core.messages import HumanMessage, SystemMessage
from .errors import AIConfigurationError, GoalTrackerError, ValidationError, NotFoundError
from .flow import build_agent_flow
from .services import GoalService, TaskService, PreferenceService

logger = logging.getLogger(__name__)

STRATEGIST_SYSTEM_PROMPT = "You are an AI strategist specializing in productivity and goal achievement."

AGENT_FALLBACK = (
    "I encountered an error while processing your request. "
    "Please check that the AI service is reachable and try again."
)
ADVICE_FALLBACK = "I couldn't get a recommendation right now. Please try again later."


def clean_llm_json(raw: str):
    """
    Cleans up common LLM output issues to allow safe JSON parsing.
    """
    # Remove Markdown-style code fences
    raw = raw.strip()
    raw = re.sub(r"^```(?:json)?", "", raw)
    raw = re.sub(r"```$", "", raw)

    # Replace smart quotes with normal quotes
    raw = raw.replace("‘", "'").replace("’", "'").replace("“", '"').replace("”", '"')

    return raw.strip()


def message_text(message) -> str:
    """Text of a chat model reply; content may be a list of parts."""
    content = getattr(message, "content", message)
    if isinstance(content, list):
        return "".join(
            part.get("text", "") if isinstance(part, dict) else str(part) for part in content
        )
    return str(content)


# ------- Prompt building -------

def _json_list(value) -> str:
    return json.dumps(value or [])


def describe_goals(goals: List[Dict[str, Any]]) -> str:
    if not goals:
        return "No goals specified"
    return "\n".join(f"- {g['title']} ({g.get('type')}, Priority: {g.get('priority')})" for g in goals)


def build_prioritize_prompt(tasks, goals, prefs) -> str:
    personality = prefs.get("personality", {})
    preferences = prefs.get("preferences", {})
    motivators = prefs.get("motivators", {})
    task_lines = "\n".join(
        f"- [{t.get('id')}] {t.get('title')}: {t.get('description') or 'No description'} "
        f"(Estimated time: {t.get('estimated_time')} min, Impact score: {t.get('impact_score')})"
        for t in tasks
    )
    return f"""You are an AI strategist helping a user prioritize their tasks effectively.

User's personality traits: {_json_list(personality.get('traits'))}
User's work style: {personality.get('workStyle') or 'Not specified'}
User's focus areas: {_json_list(preferences.get('focusAreas'))}
User's motivators: {_json_list(motivators.get('rewards'))}

Here are the user's goals:
{describe_goals(goals)}

Here are the tasks that need prioritization:
{task_lines}

Please analyze these tasks and provide:
1. A recommended priority order for these tasks based on impact, urgency, and alignment with the user's goals
2. A brief explanation of your reasoning for each task's position in the priority list
3. Any suggestions for breaking down complex tasks or combining related ones

Format your response as a JSON object with the following structure:
{{
  "recommendations": [
    {{
      "task_id": "[task id]",
      "recommendation_type": "priority",
      "content": "[priority recommendation]",
      "reasoning": "[explanation]"
    }}
  ]
}}"""


def build_strategy_prompt(task, goals, prefs) -> str:
    personality = prefs.get("personality", {})
    preferences = prefs.get("preferences", {})
    related_goal = next((g for g in goals if task.get("goal_id") and g["id"] == task["goal_id"]), None)
    related_line = f"\n- Related goal: {related_goal['title']} ({related_goal.get('type')})" if related_goal else ""
    return f"""You are an AI strategist helping a user develop an effective strategy for completing a specific task.

User's personality traits: {_json_list(personality.get('traits'))}
User's work style: {personality.get('workStyle') or 'Not specified'}
User's learning style: {personality.get('learningStyle') or 'Not specified'}
User's preferred environment: {_json_list(preferences.get('environment'))}

Task details:
- Title: {task['title']}
- Description: {task.get('description') or 'No description provided'}
- Estimated time: {task.get('estimated_time')} minutes
- Impact score: {task.get('impact_score')}
- Priority: {task.get('priority')}{related_line}

Please provide a detailed strategy for completing this task effectively, including:
1. A step-by-step approach tailored to the user's work and learning style
2. Techniques to maintain focus and motivation
3. Potential obstacles and how to overcome them
4. How this task contributes to the user's broader goals

Format your response as a JSON object with the following structure:
{{
  "recommendation": {{
    "task_id": "{task['id']}",
    "recommendation_type": "strategy",
    "content": "[your detailed strategy]",
    "reasoning": "[explanation of why this strategy suits the user]"
  }}
}}"""


def build_agent_context(prompt, tasks, goals, prefs) -> str:
    personality = prefs.get("personality", {})
    if tasks:
        task_lines = "\n".join(
            f"- {t['title']} (Priority: {t.get('priority')}, Impact: {t.get('impact_score')}, "
            f"Completed: {'Yes' if t.get('completed') else 'No'})"
            for t in tasks
        )
    else:
        task_lines = "No tasks"
    return f"""User's personality traits: {_json_list(personality.get('traits'))}
User's work style: {personality.get('workStyle') or 'Not specified'}
User's learning style: {personality.get('learningStyle') or 'Not specified'}

Current tasks:
{task_lines}

User goals:
{describe_goals(goals)}

User prompt: {prompt}

Based on the user's prompt, determine what action to take (create task, prioritize tasks, break down task, etc.)
and provide a helpful response."""


class AIStrategist:
    """Builds prompts from the user's profile, goals and tasks and relays the model's advice."""

    def __init__(self, store, llm=None):
        self.store = store
        self._llm = llm
        self.goal_service = GoalService(store)
        self.task_service = TaskService(store)
        self.preference_service = PreferenceService(store)

    @property
    def llm(self):
        if self._llm is None:
            from config import get_llm
            self._llm = get_llm()
        return self._llm

    def _ask_json(self, prompt: str) -> Dict[str, Any]:
        response = self.llm.invoke([
            SystemMessage(content=STRATEGIST_SYSTEM_PROMPT),
            HumanMessage(content=prompt),
        ])
        return json.loads(clean_llm_json(message_text(response)))

    def prioritize(self, user_id: str, tasks: List[Dict[str, Any]]) -> Dict[str, Any]:
        if not tasks:
            raise ValidationError("Please provide the tasks to prioritize")
        goals = self.goal_service.get_goals(user_id)
        prefs = self.preference_service.get_preferences(user_id)
        parsed = self._ask_json(build_prioritize_prompt(tasks, goals, prefs))
        recommendations = parsed.get("recommendations") or []
        return {"recommendations": [{**rec, "user_id": user_id} for rec in recommendations]}

    def strategy(self, user_id: str, task_id: str) -> Dict[str, Any]:
        if not task_id:
            raise ValidationError("Missing required field: taskId")
        task = self.task_service.get_task(user_id, task_id)
        goals = self.goal_service.get_goals(user_id)
        prefs = self.preference_service.get_preferences(user_id)
        parsed = self._ask_json(build_strategy_prompt(task, goals, prefs))
        recommendation = parsed.get("recommendation") or {}
        return {"recommendation": {**recommendation, "task_id": task["id"], "user_id": user_id}}

    def agent(self, user_id: str, prompt: str) -> Dict[str, Any]:
        if not prompt or not prompt.strip():
            raise ValidationError("Please enter a prompt")
        tasks = self.task_service.get_tasks(user_id)
        goals = self.goal_service.get_goals(user_id)
        prefs = self.preference_service.get_preferences(user_id)
        flow = build_agent_flow(self.llm, self.task_service)
        result = flow.invoke({
            "user_id": user_id,
            "prompt": prompt,
            "context": build_agent_context(prompt, tasks, goals, prefs),
        })
        return {"response": result["response"], "tasksModified": result.get("tasks_modified", False)}

    def handle(self, request: Dict[str, Any]) -> Dict[str, Any]:
        """Run one AI action, turning any failure into a fallback answer."""
        user_id = request.get("userId")
        action = request.get("action")
        if not user_id:
            raise ValidationError("Missing required field: userId")
        if not action:
            raise ValidationError("Missing required field: action")
        logger.info(f"AI request received: action={action}, user={user_id}")

        try:
            if action == "prioritize":
                return self.prioritize(user_id, request.get("tasks") or [])
            if action == "strategy":
                return self.strategy(user_id, request.get("taskId"))
            if action == "agent":
                return self.agent(user_id, request.get("prompt"))
        except (ValidationError, NotFoundError):
            raise
        except AIConfigurationError as e:
            logger.error("GOOGLE_API_KEY is not set in environment variables")
            return self._fallback(action, e.message, "AI service is not configured")
        except json.JSONDecodeError as e:
            logger.error(f"Failed to parse AI response as JSON: {e}")
            return self._fallback(action, None, "Invalid response from the AI service")
        except Exception as e:
            logger.error(f"Error calling the AI service: {e}")
            detail = e.message if isinstance(e, GoalTrackerError) else str(e)
            return self._fallback(action, None, detail)
        raise ValidationError(f"Invalid action specified: {action}")

    @staticmethod
    def _fallback(action: str, message: Optional[str], error: str) -> Dict[str, Any]:
        if action == "agent":
            return {"response": message or AGENT_FALLBACK, "error": error, "tasksModified": False}
        result = {"response": message or ADVICE_FALLBACK, "error": error}
        if action == "prioritize":
            result["recommendations"] = []
        else:
            result["recommendation"] = None
        return result

    def save_recommendation(self, user_id: str, recommendation: Dict[str, Any]) -> Dict[str, Any]:
        if recommendation.get("task_id"):
            self.task_service.get_task(user_id, recommendation["task_id"])
        saved = self.store.insert("ai_recommendations", user_id, recommendation)
        logger.info(f"Saved {saved['recommendation_type']} recommendation {saved['id']}")
        return saved

import logging
from typing import Literal
from langchain_core.messages import HumanMessage, SystemMessage
from langgraph.graph import StateGraph, START, END
from .errors import GoalTrackerError
from .schema import AgentState, AgentDecision

logger = logging.getLogger(__name__)

AGENT_SYSTEM_PROMPT = (
    "You are an AI productivity assistant that helps users manage their tasks and goals. "
    "You can create new tasks, prioritize existing tasks, break down complex tasks into smaller ones, "
    "and provide strategies for completing tasks effectively. "
    "Set create_task to true only when the user asks you to create or add a task, and fill in the task "
    "with a title, description, estimated time in minutes, priority (high, medium or low) and an impact "
    "score between 0 and 100. Otherwise leave create_task false and task empty. "
    "When responding, be concise, helpful, and action-oriented."
)


def build_agent_flow(llm, task_service):
    """Compile the agent graph: decide, then optionally create a task."""
    decider = llm.with_structured_output(AgentDecision)

    def agent_node(state: AgentState) -> AgentState:
        logger.info(f"Processing agent prompt for user {state['user_id']}")
        decision = decider.invoke([
            SystemMessage(content=AGENT_SYSTEM_PROMPT),
            HumanMessage(content=state["context"]),
        ])
        if isinstance(decision, dict):
            decision = AgentDecision(**decision)
        logger.info(f"Agent decision: create_task={decision.create_task}")
        return {"decision": decision, "response": decision.response, "tasks_modified": False}

    def create_task_node(state: AgentState) -> AgentState:
        draft = state["decision"].task
        try:
            task_service.create_task(state["user_id"], draft.model_dump())
        except GoalTrackerError as e:
            logger.error(f"Agent could not create task '{draft.title}': {e}")
            return {
                "response": f"I couldn't save the task \"{draft.title}\": {e.message}",
                "tasks_modified": False,
            }
        return {"tasks_modified": True}

    def maybe_create_task(state: AgentState) -> Literal["create_task", "__end__"]:
        decision = state.get("decision")
        if decision is not None and decision.create_task and decision.task is not None:
            return "create_task"
        return END

    graph_builder = StateGraph(AgentState)
    graph_builder.add_node("agent", agent_node)
    graph_builder.add_node("create_task", create_task_node)
    graph_builder.add_edge(START, "agent")
    graph_builder.add_conditional_edges("agent", maybe_create_task)
    graph_builder.add_edge("create_task", END)
    return graph_builder.compile()

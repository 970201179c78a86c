from typing import Iterable, List, Dict
from .schema import Goal, GoalNode


def organize_goal_hierarchy(goals: Iterable[Goal]) -> List[GoalNode]:
    """Turn a flat list of goals into a forest of nodes with `children` lists.

    A goal whose parent is missing from the input becomes a root. Roots and
    children keep their input order. Input rows are copied, never mutated.
    """
    goals = list(goals)
    goal_map: Dict[str, GoalNode] = {}
    root_goals: List[GoalNode] = []

    # First pass: index every goal with an empty children list
    for goal in goals:
        goal_map[goal["id"]] = {**goal, "children": []}

    # Second pass: attach to parent or promote to root
    for goal in goals:
        node = goal_map[goal["id"]]
        parent_id = goal.get("parent_goal_id")
        if parent_id and parent_id in goal_map:
            goal_map[parent_id]["children"].append(node)
        else:
            root_goals.append(node)

    return root_goals


def flatten_hierarchy(nodes: Iterable[GoalNode]) -> List[GoalNode]:
    """Pre-order walk of a goal forest."""
    flat = []
    stack = list(reversed(list(nodes)))
    while stack:
        node = stack.pop()
        flat.append(node)
        stack.extend(reversed(node.get("children", [])))
    return flat


def find_cycle_parent(goals: Iterable[Goal], goal_id: str, parent_id: str) -> bool:
    """True if making `parent_id` the parent of `goal_id` would close a loop."""
    parents = {g["id"]: g.get("parent_goal_id") for g in goals}
    seen = set()
    current = parent_id
    while current and current not in seen:
        if current == goal_id:
            return True
        seen.add(current)
        current = parents.get(current)
    return False

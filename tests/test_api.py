import json
from unittest.mock import patch, MagicMock

from langchain_core.messages import AIMessage

from goaltracker.errors import RateLimitError
from goaltracker.schema import AgentDecision, TaskDraft
from conftest import USER_ID, make_goal, make_task


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_requires_sign_in(store):
    from fastapi.testclient import TestClient
    from goaltracker.main import app
    from goaltracker.store import get_store

    app.dependency_overrides[get_store] = lambda: store
    try:
        response = TestClient(app).get("/goals")
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 401
    assert response.json() == {"error": "Please sign in to continue."}


def test_goal_crud_and_hierarchy(client):
    parent = client.post("/goals", json={"title": "Get fit", "type": "lifetime", "priority": "high"}).json()
    child = client.post("/goals", json={"title": "Run 5k", "parent_goal_id": parent["id"]})
    assert child.status_code == 201

    forest = client.get("/goals/hierarchy").json()
    assert [g["title"] for g in forest] == ["Get fit"]
    assert [g["title"] for g in forest[0]["children"]] == ["Run 5k"]

    patched = client.patch(f"/goals/{parent['id']}", json={"progress": 40}).json()
    assert patched["progress"] == 40

    assert client.delete(f"/goals/{parent['id']}").json() == {"status": "success"}
    assert client.delete(f"/goals/{parent['id']}").status_code == 404


def test_goal_validation_message(client):
    response = client.post("/goals", json={"title": "x", "progress": 140})

    assert response.status_code == 422
    assert response.json()["error"].startswith("Invalid progress")


def test_goal_cycle_is_rejected(client):
    a = client.post("/goals", json={"title": "A"}).json()
    b = client.post("/goals", json={"title": "B", "parent_goal_id": a["id"]}).json()

    response = client.patch(f"/goals/{a['id']}", json={"parent_goal_id": b["id"]})

    assert response.status_code == 400
    assert "loop" in response.json()["error"]


def test_ranked_tasks(client):
    client.post("/tasks", json={"title": "B", "priority": "medium", "impact_score": 99})
    client.post("/tasks", json={"title": "A", "priority": "high", "impact_score": 50})
    client.post("/tasks", json={"title": "D", "priority": "high", "impact_score": 95})

    ranked = client.get("/tasks/ranked").json()

    assert [t["title"] for t in ranked] == ["D", "A", "B"]


def test_completing_task_over_http(client):
    task = client.post("/tasks", json={"title": "Write", "in_progress": True}).json()

    done = client.patch(f"/tasks/{task['id']}", json={"completed": True}).json()

    assert done["completed"] is True
    assert done["in_progress"] is False


def test_dashboard(client, store):
    store.tables["goals"] = [make_goal("1"), make_goal("2", "1")]
    store.tables["tasks"] = [make_task("t1", completed=True), make_task("t2")]

    body = client.get("/dashboard").json()

    assert body["status"] == "success"
    assert body["data"]["completion_rate"] == 50
    assert body["data"]["goals"][0]["children"][0]["id"] == "2"


def test_dashboard_failure_message(client, store):
    store.fail_on.add("select:goals")

    body = client.get("/dashboard").json()

    assert body == {"status": "error", "message": "Failed to load data. Please try again later."}


def test_preferences_and_streak(client):
    saved = client.put("/preferences", json={"personality": {"traits": ["Organized"]}}).json()
    assert saved["personality"] == {"traits": ["Organized"]}

    client.post("/streak/activity", json={"day": "2024-05-01"})
    streak = client.post("/streak/activity", json={"day": "2024-05-02"}).json()
    assert streak["current"] == 2
    assert client.get("/streak").json()["best"] == 2


def test_achievements_and_milestones(client):
    achievement = client.post("/achievements", json={"title": "First goal", "earned": True}).json()
    assert achievement["earned_date"] is not None

    milestone = client.post("/milestones", json={"title": "Halfway", "reward": "Dinner out"}).json()
    updated = client.patch(f"/milestones/{milestone['id']}", json={"progress": 60}).json()
    assert updated["progress"] == 60
    assert len(client.get("/achievements").json()) == 1


def test_ai_strategist_agent(client, store, llm):
    llm.with_structured_output.return_value.invoke.return_value = AgentDecision(
        response="Added it.", create_task=True, task=TaskDraft(title="Call the bank"),
    )

    body = client.post("/ai-strategist", json={"userId": USER_ID, "action": "agent",
                                               "prompt": "Remind me to call the bank"}).json()

    assert body == {"response": "Added it.", "tasksModified": True}
    assert [t["title"] for t in client.get("/tasks").json()] == ["Call the bank"]


def test_ai_strategist_prioritize(client, llm):
    task = client.post("/tasks", json={"title": "Plan week"}).json()
    llm.invoke.return_value = AIMessage(content=json.dumps({"recommendations": [
        {"task_id": task["id"], "recommendation_type": "priority", "content": "First", "reasoning": "Sets up the week"},
    ]}))

    body = client.post("/ai-strategist", json={"userId": USER_ID, "action": "prioritize",
                                               "tasks": [task]}).json()

    assert body["recommendations"][0]["user_id"] == USER_ID


def test_ai_strategist_rejects_other_user(client):
    response = client.post("/ai-strategist", json={"userId": "intruder", "action": "agent", "prompt": "hi"})

    assert response.status_code == 403


def test_ai_strategist_unknown_action(client):
    response = client.post("/ai-strategist", json={"userId": USER_ID, "action": "dance"})

    assert response.status_code == 422


def test_ai_strategist_rate_limited(client):
    limiter = MagicMock()
    limiter.check.side_effect = RateLimitError()

    with patch("goaltracker.routes.ai_limiter", limiter):
        response = client.post("/ai-strategist", json={"userId": USER_ID, "action": "agent", "prompt": "hi"})

    assert response.status_code == 429
    assert "Too many requests" in response.json()["error"]


def test_checkout_session(client):
    session = MagicMock(id="cs_test_123")
    with patch("goaltracker.checkout.STRIPE_SECRET_KEY", "sk_test"), \
            patch("goaltracker.checkout.stripe.checkout.Session.create", return_value=session) as create:
        body = client.post("/create-checkout-session",
                           json={"priceId": "price_123", "userId": USER_ID}).json()

    assert body == {"sessionId": "cs_test_123"}
    kwargs = create.call_args.kwargs
    assert kwargs["line_items"] == [{"price": "price_123", "quantity": 1}]
    assert kwargs["customer_email"] == "ada@example.com"
    assert kwargs["client_reference_id"] == USER_ID


def test_checkout_without_stripe_key(client):
    with patch("goaltracker.checkout.STRIPE_SECRET_KEY", None):
        response = client.post("/create-checkout-session", json={"priceId": "price_123", "userId": USER_ID})

    assert response.status_code == 503


def test_patch_rejects_null_for_required_fields(client):
    goal = client.post("/goals", json={"title": "Read more"}).json()
    task = client.post("/tasks", json={"title": "Pick a book"}).json()

    goal_response = client.patch(f"/goals/{goal['id']}", json={"title": None})
    task_response = client.patch(f"/tasks/{task['id']}", json={"completed": None})

    assert goal_response.status_code == 422
    assert goal_response.json()["error"].startswith("Invalid title")
    assert task_response.status_code == 422
    assert task_response.json()["error"].startswith("Invalid completed")
    assert client.get("/goals").json()[0]["title"] == "Read more"


def test_patch_allows_null_for_optional_links(client):
    parent = client.post("/goals", json={"title": "Parent"}).json()
    child = client.post("/goals", json={"title": "Child", "parent_goal_id": parent["id"]}).json()

    detached = client.patch(f"/goals/{child['id']}", json={"parent_goal_id": None})

    assert detached.status_code == 200
    assert detached.json()["parent_goal_id"] is None


def test_google_outage_is_a_connectivity_error(store):
    from fastapi.testclient import TestClient
    from google.auth.exceptions import TransportError
    from goaltracker.main import app
    from goaltracker.store import get_store

    app.dependency_overrides[get_store] = lambda: store
    try:
        with patch("goaltracker.auth.id_token.verify_oauth2_token", side_effect=TransportError("unreachable")):
            response = TestClient(app).get("/goals", headers={"Authorization": "Bearer some-token"})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 503
    assert response.json() == {"error": "Could not reach Google to verify your sign-in. Please try again."}


def test_rejected_google_token(store):
    from fastapi.testclient import TestClient
    from goaltracker.main import app
    from goaltracker.store import get_store

    app.dependency_overrides[get_store] = lambda: store
    try:
        with patch("goaltracker.auth.id_token.verify_oauth2_token", side_effect=ValueError("Token expired")):
            response = TestClient(app).get("/goals", headers={"Authorization": "Bearer some-token"})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 401

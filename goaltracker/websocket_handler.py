import asyncio
import json
import logging
from fastapi import WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from goaltracker.auth import authenticate
from goaltracker.dashboard import Dashboard
from goaltracker.errors import GoalTrackerError, user_message
from goaltracker.security import ai_limiter
from goaltracker.store import get_store
from goaltracker.strategist import AIStrategist

logger = logging.getLogger(__name__)

AI_ACTIONS = {"prioritize", "strategy", "agent"}


async def handle_connection(websocket: WebSocket, store=None, strategist=None):
    """Run one WebSocket session: authenticate, then serve dashboard and AI requests."""
    await websocket.accept()
    logger.info("WebSocket connection accepted")

    store = store or get_store()
    strategist = strategist or AIStrategist(store)
    user_id = None
    dashboard = None

    try:
        while True:
            # Receive message
            data = await websocket.receive_text()
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                await websocket.send_json({"type": "error", "data": {"message": "Invalid JSON message"}})
                continue
            logger.info(f"Received message: {message.get('type')}")

            # Extract message type and args
            message_type = message.get("type")
            args = message.get("args", {})
            response_type = f"{message_type}_response"

            if not message_type:
                await websocket.send_json({
                    "type": "error",
                    "data": {"message": "Message type is required"}
                })
                continue

            try:
                # Handle authentication
                if message_type == "auth":
                    user_info = authenticate(args.get("token"))
                    user_id = user_info["sub"]
                    dashboard = Dashboard(store, user_id)
                    result = await dashboard.refresh()
                    await websocket.send_json(jsonable_encoder({
                        "type": response_type,
                        "data": {
                            "status": "success",
                            "user_id": user_id,
                            "user_info": user_info,
                            "dashboard": result.get("data"),
                        }
                    }))
                    logger.info(f"User authenticated: {user_id}")
                    continue

                if dashboard is None:
                    await websocket.send_json({
                        "type": response_type,
                        "data": {"status": "error", "message": "Please sign in to continue."}
                    })
                    continue

                if message_type == "refresh":
                    result = await dashboard.refresh()
                elif message_type == "update_task":
                    result = await dashboard.update_task(args.get("id"), args.get("updates", {}))
                elif message_type == "update_goal":
                    result = await dashboard.update_goal(args.get("id"), args.get("updates", {}))
                elif message_type in AI_ACTIONS:
                    ai_limiter.check(f"{user_id}:ws-{message_type}")
                    request = {
                        "userId": user_id,
                        "action": message_type,
                        "tasks": args.get("tasks"),
                        "taskId": args.get("taskId"),
                        "prompt": args.get("prompt"),
                    }
                    answer = await asyncio.to_thread(strategist.handle, request)
                    if message_type == "agent" and answer.get("tasksModified"):
                        await dashboard.refresh()
                    result = {"status": "error" if answer.get("error") else "success", **answer}
                else:
                    await websocket.send_json({
                        "type": "error",
                        "data": {"message": f"Unknown message type: {message_type}"}
                    })
                    continue

                await websocket.send_json(jsonable_encoder({"type": response_type, "data": result}))
            except GoalTrackerError as e:
                logger.warning(f"{message_type} failed: {e.message}")
                await websocket.send_json({
                    "type": response_type,
                    "data": {"status": "error", "message": user_message(e)}
                })

    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected for user {user_id}")
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
        await websocket.close()

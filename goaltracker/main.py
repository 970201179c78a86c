import logging
from fastapi import FastAPI, Request, WebSocket
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from goaltracker.errors import GoalTrackerError, describe_field_errors
from goaltracker.routes import router
from goaltracker.websocket_handler import handle_connection

logger = logging.getLogger(__name__)

app = FastAPI(title="Goal Tracker API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router)


@app.exception_handler(GoalTrackerError)
async def goal_tracker_error_handler(request: Request, exc: GoalTrackerError):
    logger.info(f"{request.method} {request.url.path} failed: {exc.message}")
    return JSONResponse(status_code=exc.status_code, content={"error": exc.message})


@app.exception_handler(RequestValidationError)
async def request_validation_error_handler(request: Request, exc: RequestValidationError):
    message = describe_field_errors(exc.errors(), skip=1)
    return JSONResponse(status_code=422, content={"error": message})


@app.websocket("/ws")
async def websocket_route(websocket: WebSocket):
    await handle_connection(websocket)


@app.get("/health")
async def health_check():
    return {"status": "healthy"}

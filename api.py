"""
HTTP bridge for DevChallenge Bot.

Exposes the A2A JSON-RPC endpoint used by chat platforms and the
scheduler admin routes (register / unregister / status / trigger).
"""

import logging
import uuid
from dataclasses import asdict
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from scheduler import DailyChallengeScheduler, next_scheduled_run, schedule_info, validate_time_of_day
from services.dispatcher import ChallengeDispatcher, render
from services.user_registry import UserRegistry

logger = logging.getLogger(__name__)

AGENT_NAME = "challengeAgent"
DEFAULT_USER_ID = "default_user"


class RegisterRequest(BaseModel):
    """Scheduler (un)registration request"""
    userId: str


class TriggerRequest(BaseModel):
    """Manual distribution request"""
    timeOfDay: str


def _as_dict(value: Any) -> Dict[str, Any]:
    return value if isinstance(value, dict) else {}


def extract_text(message: Dict[str, Any]) -> str:
    parts = message.get("parts")
    if not isinstance(parts, list):
        return ""
    return " ".join(p["text"] for p in parts
                    if isinstance(p, dict) and p.get("kind") == "text" and isinstance(p.get("text"), str) and p["text"])


def extract_user_id(message: Dict[str, Any]) -> str:
    metadata = _as_dict(message.get("metadata"))
    return (metadata.get("userId")
            or message.get("taskId")
            or message.get("messageId")
            or DEFAULT_USER_ID)


def _text_message(role: str, text: str, message_id: str, task_id: Optional[str]) -> Dict[str, Any]:
    return {
        "kind": "message",
        "role": role,
        "parts": [{"kind": "text", "text": text, "data": None, "file_url": None}],
        "messageId": message_id,
        "taskId": task_id,
        "metadata": None,
    }


def build_task_response(request_id: Any, task_id: Optional[str], user_id: str, user_text: str,
                        user_message_id: Optional[str], reply_text: str,
                        tool_result: Dict[str, Any]) -> Dict[str, Any]:
    reply_id = f"msg-{uuid.uuid4().hex}"
    artifacts: List[Dict[str, Any]] = [
        {
            "artifactId": f"artifact-{uuid.uuid4().hex}",
            "name": "challengeAgentResponse",
            "parts": [{"kind": "text", "text": reply_text, "data": None, "file_url": None}],
        },
        {
            "artifactId": f"tool-{uuid.uuid4().hex}",
            "name": "ToolResults",
            "parts": [{"kind": "data", "data": tool_result}],
        },
    ]
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "result": {
            "id": task_id,
            "contextId": f"ctx-{user_id}",
            "status": {
                "state": "completed",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "message": _text_message("agent", reply_text, reply_id, task_id),
            },
            "artifacts": artifacts,
            "history": [
                _text_message("user", user_text, user_message_id, task_id),
                _text_message("agent", reply_text, reply_id, task_id),
            ],
            "kind": "task",
        },
        "error": None,
    }


def build_error_response(request_id: Any, task_id: Optional[str], user_id: str, error: Exception) -> Dict[str, Any]:
    return {
        "jsonrpc": "2.0",
        "id": request_id,
        "result": {
            "id": task_id,
            "contextId": f"ctx-{user_id}",
            "status": {
                "state": "failed",
                "timestamp": datetime.now(timezone.utc).isoformat(),
                "message": _text_message("agent", "❌ Something went wrong. Please try again.",
                                         f"error-{uuid.uuid4().hex}", task_id),
            },
            "artifacts": [
                {
                    "artifactId": f"error-{uuid.uuid4().hex}",
                    "name": "ErrorDetails",
                    "parts": [{"kind": "text", "text": str(error) or "Unknown error"}],
                }
            ],
            "history": [],
            "kind": "task",
        },
        "error": {"code": -32603, "message": str(error) or "Internal error"},
    }


def create_api(dispatcher: ChallengeDispatcher, registry: UserRegistry,
               scheduler: DailyChallengeScheduler, lifespan=None) -> FastAPI:
    app = FastAPI(
        title="DevChallenge Bot API",
        description="Daily coding challenges over A2A, plus scheduler administration",
        version="1.0.0",
        lifespan=lifespan,
    )

    @app.get("/")
    async def health():
        return {
            "status": "ok",
            "message": "DevChallenge Bot is running",
            "endpoints": {"a2a": f"/a2a/agent/{AGENT_NAME}"},
        }

    @app.post(f"/a2a/agent/{AGENT_NAME}")
    async def a2a_message(request: Dict[str, Any]):
        request_id = request.get("id")
        task_id = None
        user_id = DEFAULT_USER_ID

        try:
            message = _as_dict(_as_dict(request.get("params")).get("message"))
            task_id = message.get("taskId")
            user_id = extract_user_id(message)
            user_text = extract_text(message)
            logger.info(f"A2A request from {user_id} (task {task_id}): {user_text!r}")

            result = await dispatcher.dispatch(user_id, user_text)
            reply_text = render(result)

            return build_task_response(request_id, task_id, user_id, user_text,
                                       message.get("messageId"), reply_text, result)
        except Exception as e:
            logger.error(f"Error processing A2A request: {e}", exc_info=True)
            return build_error_response(request_id, task_id, user_id, e)

    @app.post("/api/scheduler/register")
    async def register_user(request: RegisterRequest):
        registry.add_user(request.userId)
        return {
            "success": True,
            "message": f"User {request.userId} registered for scheduled challenges",
            "schedule": {name: slot["time"] for name, slot in schedule_info().items()},
        }

    @app.post("/api/scheduler/unregister")
    async def unregister_user(request: RegisterRequest):
        registry.remove_user(request.userId)
        return {
            "success": True,
            "message": f"User {request.userId} unregistered from scheduled challenges",
        }

    @app.get("/api/scheduler/status")
    async def scheduler_status():
        time_of_day, next_time = next_scheduled_run(datetime.now(timezone.utc))
        return {
            "active": scheduler.scheduler.running,
            "registeredUsers": registry.get_user_count(),
            "schedule": schedule_info(),
            "timezone": "UTC",
            "nextRun": {"type": time_of_day, "time": next_time.isoformat()},
        }

    @app.post("/api/scheduler/trigger")
    async def trigger(request: TriggerRequest):
        try:
            validate_time_of_day(request.timeOfDay)
        except ValueError as e:
            raise HTTPException(status_code=400, detail=str(e))

        outcomes = await scheduler.distribute(request.timeOfDay)
        return {
            "success": True,
            "message": f"Triggered {request.timeOfDay} challenge distribution",
            "affectedUsers": registry.get_user_count(),
            "outcomes": [asdict(o) for o in outcomes],
        }

    return app

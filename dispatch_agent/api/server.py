import uuid
from typing import Any, Dict, List, Union

from fastapi import Depends, FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from dispatch_agent.agent.graph import DispatchAgent
from dispatch_agent.agent.llm import ModelServiceError
from dispatch_agent.agent.session import ChatSession
from dispatch_agent.agent.state import DeliveryStatus
from dispatch_agent.config import load_dotenv
from dispatch_agent.store import DeliveryStore


app = FastAPI(title="Drone Dispatch Agent API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

_agent: Union[DispatchAgent, None] = None
_store = DeliveryStore()
_sessions: Dict[str, ChatSession] = {}


def get_agent() -> DispatchAgent:
    global _agent
    if _agent is None:
        load_dotenv()
        from dispatch_agent.factory import build_agent  # runtime import after .env is loaded
        _agent = build_agent()
    return _agent


def get_store() -> DeliveryStore:
    return _store


class ChatMessage(BaseModel):
    role: str
    content: Union[str, List[Dict[str, Any]]]


class ChatReq(BaseModel):
    messages: List[ChatMessage]


class SessionMessageReq(BaseModel):
    content: str


class StatusReq(BaseModel):
    status: DeliveryStatus


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@app.get("/health")
def health() -> dict:
    return {"status": "ok"}


@app.post("/chat")
async def chat(req: ChatReq, agent: DispatchAgent = Depends(get_agent)) -> Any:
    if not req.messages:
        return _error(400, "messages must not be empty")
    try:
        result = await agent.run_turn([m.model_dump() for m in req.messages])
    except ModelServiceError as exc:
        return _error(502, str(exc))
    except Exception as exc:
        return _error(500, f"Failed to process chat request: {exc}")
    return {
        "content": result.content,
        "toolCalls": [t.model_dump(by_alias=True) for t in result.tool_calls],
    }


@app.post("/sessions")
def create_session(
    agent: DispatchAgent = Depends(get_agent), store: DeliveryStore = Depends(get_store)
) -> dict:
    session_id = uuid.uuid4().hex
    session = ChatSession(agent, store)
    _sessions[session_id] = session
    return {"sessionId": session_id, "content": session.transcript[0]["content"]}


@app.post("/sessions/{session_id}/messages")
async def session_message(session_id: str, req: SessionMessageReq) -> Any:
    session = _sessions.get(session_id)
    if session is None:
        raise HTTPException(status_code=404, detail="Unknown session")
    try:
        reply = await session.send(req.content)
    except Exception as exc:
        return _error(500, f"Failed to process chat request: {exc}")
    return {
        "content": reply.content,
        "toolCalls": [t.model_dump(by_alias=True) for t in reply.tool_calls],
        "deliveries": [d.model_dump(by_alias=True) for d in reply.deliveries],
    }


@app.delete("/sessions/{session_id}")
def delete_session(session_id: str) -> dict:
    if _sessions.pop(session_id, None) is None:
        raise HTTPException(status_code=404, detail="Unknown session")
    return {"sessionId": session_id, "deleted": True}


@app.get("/deliveries")
def list_deliveries(store: DeliveryStore = Depends(get_store)) -> List[dict]:
    return [d.model_dump(by_alias=True) for d in store.list()]


@app.patch("/deliveries/{delivery_id}")
def update_delivery(delivery_id: int, req: StatusReq, store: DeliveryStore = Depends(get_store)) -> dict:
    updated = store.update_status(delivery_id, req.status)
    if updated is None:
        raise HTTPException(status_code=404, detail="Unknown delivery")
    return updated.model_dump(by_alias=True)

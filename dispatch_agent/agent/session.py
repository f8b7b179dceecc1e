"""A chat conversation: transcript, confirmation state and delivery store.

`send()` is what a chat window calls per user message. Confirmations that
the state machine accepts are handled locally without a model call;
everything else goes through the orchestration loop.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, List

from pydantic import BaseModel, Field

from dispatch_agent.agent.graph import DispatchAgent
from dispatch_agent.agent.llm import ModelServiceError
from dispatch_agent.agent.pending import can_confirm, confirm, observe_tool_calls, observe_user_text
from dispatch_agent.agent.state import ConversationState, Delivery, ToolCallRecord
from dispatch_agent.store import DeliveryStore


logger = logging.getLogger(__name__)

GREETING = (
    "Hello! I'm here to help you schedule drone deliveries. I can check availability, "
    "calculate costs, and manage your delivery operations. What would you like to do?"
)
TURN_ERROR = "Sorry, I encountered an error. Please try again."


class SessionReply(BaseModel):
    content: str
    tool_calls: List[ToolCallRecord] = Field(default_factory=list)
    deliveries: List[Delivery] = Field(default_factory=list)
    converged: bool = True


class ChatSession:
    def __init__(self, agent: DispatchAgent, store: DeliveryStore) -> None:
        self.agent = agent
        self.store = store
        self.state = ConversationState()
        self.transcript: List[Dict[str, Any]] = [{"role": "assistant", "content": GREETING}]
        # Last reply written by the model; local confirmation notices don't count
        self.last_model_text = ""

    def _api_messages(self) -> List[Dict[str, Any]]:
        # The Messages API requires the conversation to open with a user turn
        messages = list(self.transcript)
        while messages and messages[0]["role"] != "user":
            messages.pop(0)
        return messages

    async def send(self, text: str) -> SessionReply:
        text = text.strip()
        self.state = observe_user_text(self.state, text)

        if can_confirm(self.state, text):
            outcome = confirm(self.state, self.last_model_text)
            self.state = outcome.state
            for delivery in outcome.deliveries:
                self.store.add(delivery)
            self.transcript.append({"role": "user", "content": text})
            self.transcript.append({"role": "assistant", "content": outcome.message})
            return SessionReply(content=outcome.message, deliveries=outcome.deliveries)

        self.transcript.append({"role": "user", "content": text})
        try:
            result = await self.agent.run_turn(self._api_messages())
        except ModelServiceError as exc:
            logger.error("Turn failed: %s", exc)
            self.transcript.append({"role": "assistant", "content": TURN_ERROR})
            return SessionReply(content=TURN_ERROR, converged=False)

        self.state = observe_tool_calls(self.state, result.tool_calls)
        self.last_model_text = result.content
        self.transcript.append({"role": "assistant", "content": result.content})
        return SessionReply(content=result.content, tool_calls=result.tool_calls, converged=result.converged)


__all__ = ["ChatSession", "SessionReply", "GREETING", "TURN_ERROR"]

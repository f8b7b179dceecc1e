import asyncio
import json
from typing import Any, Dict, List, Sequence

from langgraph.graph import StateGraph, START, END
from pydantic import BaseModel, Field

from dispatch_agent.agent.llm import RetryingModelClient
from dispatch_agent.agent.state import ToolCallRecord, TurnState
from dispatch_agent.config import env_flag
from dispatch_agent.tools.executor import ToolExecutor
from dispatch_agent.tools.schemas import TOOLS


DEFAULT_MODEL = "claude-sonnet-4-20250514"
MAX_ITERATIONS = 5

SYSTEM = (
    "You are an assistant integrated into a hospital drone delivery operations system.\n"
    "WORKFLOW for every delivery request:\n"
    "1. Build the deliveries array (id, date YYYY-MM-DD, time HH:MM, requirements.capacity in kg, "
    "cooling/heating flags, delivery {lng, lat}).\n"
    "2. Call query_available_drones with it.\n"
    "3. If drones are available, IMMEDIATELY call plan_delivery_path with the SAME deliveries array. "
    "If none are, call explain_why_unavailable for the delivery.\n"
    "4. If plan_delivery_path returns success=false, do NOT quote any cost; say which deliveries "
    "could not be planned and offer the ones that were.\n"
    "5. On success summarise the plan with the lines 'Total Cost: £<amount>' and "
    "'Drone #<id>' (or 'Drones Used: #<id> and #<id>'), then end with exactly: "
    "\"Type 'confirm' to schedule this delivery.\"\n"
    "Only quote numbers returned by the tools."
)

NOT_CONVERGED = (
    "Sorry, tool calling did not converge after {n} rounds. "
    "Please try again with a simpler request."
)


def _p(msg: str) -> None:
    if env_flag("AGENT_PROGRESS", "1"):
        print(msg, flush=True)


def _preview(obj: Any, limit: int = 200) -> str:
    try:
        text = json.dumps(obj, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        text = str(obj)
    return text if len(text) <= limit else text[:limit] + "..."


class TurnResult(BaseModel):
    content: str
    tool_calls: List[ToolCallRecord] = Field(default_factory=list)
    converged: bool = True
    messages: List[Dict[str, Any]] = Field(default_factory=list)


async def run_tool(executor: ToolExecutor, tool_use: Dict[str, Any]) -> ToolCallRecord:
    """Execute one tool-use block; any failure becomes an error record."""
    name = tool_use.get("name", "")
    raw_input = tool_use.get("input") or {}
    try:
        result = await executor.execute(name, raw_input)
        status = "completed"
    except Exception as exc:
        result = {"error": str(exc)}
        status = "error"
    _p(f"[tool] {name} status={status} result={_preview(result)}")
    return ToolCallRecord(
        id=tool_use.get("id", ""),
        name=name,
        input=raw_input if isinstance(raw_input, dict) else {"value": raw_input},
        status=status,
        result=result,
    )


def tool_result_block(record: ToolCallRecord) -> Dict[str, Any]:
    block = {
        "type": "tool_result",
        "tool_use_id": record.id,
        "content": json.dumps(record.result, indent=2, ensure_ascii=False, default=str),
    }
    if not record.succeeded:
        block["is_error"] = True
    return block


def build_graph(
    model: RetryingModelClient,
    executor: ToolExecutor,
    max_iterations: int = MAX_ITERATIONS,
    model_name: str = DEFAULT_MODEL,
    max_tokens: int = 4096,
):
    async def model_node(state: TurnState) -> TurnState:
        params = {
            "model": model_name,
            "max_tokens": max_tokens,
            "system": SYSTEM,
            "tools": TOOLS,
            "messages": state.messages,
        }
        response = await model.call(params)
        state.iterations += 1
        uses = response.tool_uses
        if uses:
            state.assistant_content = response.content
            state.pending_tool_uses = uses
            _p(f"[model #{state.iterations}] tool_use={[u.get('name') for u in uses]}")
        else:
            state.final_text = response.text or "No response"
            state.converged = True
            _p(f"[model #{state.iterations}] final text ({len(state.final_text)} chars)")
        return state

    async def tools_node(state: TurnState) -> TurnState:
        # Sibling calls have no ordering dependency; run them together
        records = await asyncio.gather(*(run_tool(executor, u) for u in state.pending_tool_uses))
        state.messages = state.messages + [
            {"role": "assistant", "content": state.assistant_content},
            {"role": "user", "content": [tool_result_block(r) for r in records]},
        ]
        state.tool_calls = state.tool_calls + list(records)
        state.assistant_content = []
        state.pending_tool_uses = []
        return state

    def give_up_node(state: TurnState) -> TurnState:
        state.final_text = NOT_CONVERGED.format(n=state.iterations)
        state.converged = False
        _p(f"[give_up] no final answer after {state.iterations} rounds")
        return state

    def _route_after_model(s: TurnState) -> str:
        if s.final_text is not None:
            return "END"
        if s.iterations >= max_iterations:
            return "give_up"
        return "tools"

    g = StateGraph(TurnState)
    g.add_node("model", model_node)
    g.add_node("tools", tools_node)
    g.add_node("give_up", give_up_node)
    g.add_edge(START, "model")
    g.add_conditional_edges(
        "model",
        _route_after_model,
        {"END": END, "tools": "tools", "give_up": "give_up"},
    )
    g.add_edge("tools", "model")
    g.add_edge("give_up", END)
    return g.compile()


class DispatchAgent:
    """Runs one user turn through the model/tool loop."""

    def __init__(
        self,
        model: RetryingModelClient,
        executor: ToolExecutor,
        max_iterations: int = MAX_ITERATIONS,
        model_name: str = DEFAULT_MODEL,
        max_tokens: int = 4096,
    ) -> None:
        self.max_iterations = max_iterations
        self.graph = build_graph(model, executor, max_iterations, model_name, max_tokens)

    async def run_turn(self, messages: Sequence[Dict[str, Any]]) -> TurnResult:
        config = {"recursion_limit": 2 * self.max_iterations + 5}
        result = await self.graph.ainvoke(TurnState(messages=list(messages)), config)
        # LangGraph may return a plain dict; support both pydantic and dict outputs
        state = result if isinstance(result, TurnState) else TurnState.model_validate(result)
        return TurnResult(
            content=state.final_text or "No response",
            tool_calls=state.tool_calls,
            converged=state.converged,
            messages=state.messages,
        )


__all__ = [
    "SYSTEM",
    "NOT_CONVERGED",
    "MAX_ITERATIONS",
    "TurnResult",
    "DispatchAgent",
    "build_graph",
    "run_tool",
    "tool_result_block",
]

from typing import Any, Dict, List, Optional, TypedDict

from langgraph.graph import StateGraph, END
from pydantic import ValidationError as SchemaValidationError

from app.helpers.prompts import OPTIMIZE_SYSTEM_PROMPT, build_optimization_prompt
from app.models.schemas import StructuredProfile
from app.services.optimizer import apply_basic_optimizations, merge_oracle_profile
from app.utils.exceptions import OracleError
from app.utils.logging_config import get_logger
from app.utils.utils import Fallback, ParseResult, parse_json_reply

logger = get_logger(__name__)


# LangGraph state and nodes
class OptimizationState(TypedDict, total=False):
    profile: StructuredProfile
    suggestions: List[str]
    messages: List[Dict[str, str]]
    reply: str
    outcome: ParseResult
    optimized: StructuredProfile
    strategy: str
    fallback_reason: Optional[str]


def _route_or_fallback(next_node: str):
    def route(state: OptimizationState) -> str:
        return "fallback" if isinstance(state.get("outcome"), Fallback) else next_node
    return route


def build_optimization_graph(oracle: Any = None, enabled: bool = True):
    """prompt -> generate -> parse -> merge, with any failure routed to fallback.

    `oracle` is anything with chat(messages) -> {"content": str}. When it is
    missing or disabled every run goes straight to the local rewrite.
    """

    def node_prompt(state: OptimizationState):
        if oracle is None or not enabled:
            return {"outcome": Fallback("oracle disabled")}
        prompt = build_optimization_prompt(state["profile"], state.get("suggestions", []))
        return {"messages": [
            {"role": "system", "content": OPTIMIZE_SYSTEM_PROMPT},
            {"role": "user", "content": prompt},
        ]}

    def node_generate(state: OptimizationState):
        try:
            reply = oracle.chat(state["messages"])
        except OracleError as e:
            logger.warning(f"Oracle call failed: {e.message}")
            return {"outcome": Fallback(f"oracle unavailable: {e.message}")}
        except Exception as e:
            logger.warning(f"Oracle call raised {type(e).__name__}: {e}", exc_info=True)
            return {"outcome": Fallback(f"oracle unavailable: {type(e).__name__}")}

        content = reply.get("content") if isinstance(reply, dict) else None
        if not isinstance(content, str):
            logger.warning(f"Oracle reply has no text content: {type(reply).__name__}")
            return {"outcome": Fallback("oracle reply has no text content")}
        return {"reply": content}

    def node_parse(state: OptimizationState):
        return {"outcome": parse_json_reply(state.get("reply", ""))}

    def node_merge(state: OptimizationState):
        outcome = state["outcome"]
        if not isinstance(outcome.data, dict):
            return {"outcome": Fallback("oracle reply is not an object")}
        try:
            merged = merge_oracle_profile(outcome.data, state["profile"])
        except SchemaValidationError as e:
            logger.warning(f"Oracle profile rejected: {e.error_count()} validation errors")
            return {"outcome": Fallback("oracle profile failed validation")}
        return {"optimized": merged, "strategy": "oracle", "fallback_reason": None}

    def node_fallback(state: OptimizationState):
        outcome = state.get("outcome")
        reason = outcome.reason if isinstance(outcome, Fallback) else "unknown"
        return {
            "optimized": apply_basic_optimizations(state["profile"]),
            "strategy": "fallback",
            "fallback_reason": reason,
        }

    g = StateGraph(OptimizationState)
    g.add_node("prompt", node_prompt)
    g.add_node("generate", node_generate)
    g.add_node("parse", node_parse)
    g.add_node("merge", node_merge)
    g.add_node("fallback", node_fallback)
    g.set_entry_point("prompt")
    g.add_conditional_edges("prompt", _route_or_fallback("generate"), {"generate": "generate", "fallback": "fallback"})
    g.add_conditional_edges("generate", _route_or_fallback("parse"), {"parse": "parse", "fallback": "fallback"})
    g.add_conditional_edges("parse", _route_or_fallback("merge"), {"merge": "merge", "fallback": "fallback"})
    g.add_conditional_edges("merge", _route_or_fallback(END), {END: END, "fallback": "fallback"})
    g.add_edge("fallback", END)
    return g.compile()


__all__ = ["OptimizationState", "build_optimization_graph"]

"""
Validation pipeline as a LangGraph state graph.

accept -> extract -> validate -> calibrate -> gates
gates -> finalize                       (no blocking failure)
gates -> repair -> gates                (blocking failure, attempts left)
gates -> fail                           (blocking failure, attempts exhausted)
"""
import logging
from typing import Any, Dict, Optional

from langgraph.graph import StateGraph, END

from ..config.settings import settings
from ..core.models.report import JobResult
from ..core.verification.citation import index_documents
from .context import PipelineContext
from .nodes import (
    accept_node,
    calibrate_node,
    extract_node,
    fail_node,
    finalize_node,
    gates_node,
    repair_node,
    route_after_gates,
    validate_node,
)
from .state import ValidationState

logger = logging.getLogger(__name__)

_graph = None


def create_validation_graph():
    workflow = StateGraph(ValidationState)

    workflow.add_node("accept", accept_node)
    workflow.add_node("extract", extract_node)
    workflow.add_node("validate", validate_node)
    workflow.add_node("calibrate", calibrate_node)
    workflow.add_node("gates", gates_node)
    workflow.add_node("repair", repair_node)
    workflow.add_node("finalize", finalize_node)
    workflow.add_node("fail", fail_node)

    workflow.set_entry_point("accept")
    workflow.add_edge("accept", "extract")
    workflow.add_edge("extract", "validate")
    workflow.add_edge("validate", "calibrate")
    workflow.add_edge("calibrate", "gates")

    workflow.add_conditional_edges(
        "gates",
        route_after_gates,
        {
            "repair": "repair",
            "finalize": "finalize",
            "fail": "fail",
        },
    )
    workflow.add_edge("repair", "gates")
    workflow.add_edge("finalize", END)
    workflow.add_edge("fail", END)

    return workflow.compile()


def get_validation_graph():
    """The compiled graph is stateless and shared; per-job state lives in the context."""
    global _graph
    if _graph is None:
        _graph = create_validation_graph()
    return _graph


async def run_validation(
    payload: Any,
    documents: Optional[Dict[str, str]] = None,
    context: Optional[PipelineContext] = None,
) -> JobResult:
    """
    Run one validation job to completion.

    Raises:
        MalformedScheduleError: the schedule cannot be read, or the final result
            fails schema validation.
        RepairExhaustedError: blocking gates still fail after the repair cap.
        JobCancelledError: cancellation was requested between two steps.
    """
    context = context or PipelineContext()
    initial: ValidationState = {
        "payload": payload,
        "documents": index_documents(documents),
        "steps": [],
    }
    final_state = await get_validation_graph().ainvoke(
        initial,
        config={
            "configurable": {"context": context},
            "recursion_limit": settings.recursion_limit(context.config),
        },
    )
    return final_state["result"]

"""
Quality gate evaluation, bounded repair loop and the terminal failure node.
"""
import logging
from typing import Any, Dict

from langchain_core.runnables import RunnableConfig

from ...core.errors import RepairExhaustedError
from ...core.quality.repair import RepairWorkspace
from ..context import get_context
from ..state import ValidationState

logger = logging.getLogger(__name__)

GATES_PROGRESS = 70
REPAIR_PROGRESS_SPAN = 18


async def gates_node(state: ValidationState, config: RunnableConfig) -> Dict[str, Any]:
    ctx = get_context(config)
    ctx.checkpoint()
    ctx.report_progress(GATES_PROGRESS, "Evaluating quality gates")

    evaluation = ctx.gate_manager.evaluate(state["report"])
    failing = [r.name for r in evaluation.blocking_failures]
    return {
        "evaluation": evaluation,
        "gate_history": [evaluation],
        "steps": [f"gates: blocking failures {failing or 'none'}, warnings {len(evaluation.warnings)}"],
    }


def route_after_gates(state: ValidationState, config: RunnableConfig) -> str:
    evaluation = state["evaluation"]
    if evaluation.passed:
        return "finalize"
    ctx = get_context(config)
    if state.get("repair_attempts", 0) < ctx.config.max_repair_attempts:
        return "repair"
    return "fail"


async def repair_node(state: ValidationState, config: RunnableConfig) -> Dict[str, Any]:
    ctx = get_context(config)
    ctx.checkpoint()
    attempt = state.get("repair_attempts", 0) + 1
    cap = max(ctx.config.max_repair_attempts, 1)
    ctx.report_progress(
        GATES_PROGRESS + 2 + (REPAIR_PROGRESS_SPAN - 2) * attempt // cap,
        f"Repairing failed gates (attempt {attempt}/{ctx.config.max_repair_attempts})",
    )

    workspace = RepairWorkspace(
        ledger=ctx.ledger,
        schedule=state["schedule"],
        citations=state.get("citations") or {},
        provenance=state.get("provenance") or {},
        contradictions=state.get("contradictions") or [],
        aggregator=ctx.aggregator,
    )
    report, entries = ctx.repair_engine.run_cycle(
        workspace,
        state["report"],
        state["evaluation"],
        attempt,
        include_warnings=ctx.config.repair_warnings,
    )
    changed = sum(len(e.changes) for e in entries)
    return {
        "schedule": workspace.schedule,
        "report": report,
        "repair_attempts": attempt,
        "repair_log": entries,
        "steps": [f"repair #{attempt}: {len(entries)} strategies, {changed} change(s)"],
    }


async def fail_node(state: ValidationState, config: RunnableConfig) -> Dict[str, Any]:
    """Blocking gates survived every repair attempt: end the job with the gate and its last score."""
    ctx = get_context(config)
    evaluation = state["evaluation"]
    worst = evaluation.blocking_failures[0]
    attempts = state.get("repair_attempts", 0)
    logger.error(
        f"Blocking gates still failing after {attempts} repair attempt(s): "
        f"{[r.name for r in evaluation.blocking_failures]}"
    )
    ctx.step = f"Quality gate {worst.name} failed"
    raise RepairExhaustedError(worst.name, worst.score, worst.threshold, attempts)

"""
Intake nodes: accept the draft schedule, extract claims into the ledger.
"""
import logging
from typing import Any, Dict

from langchain_core.runnables import RunnableConfig

from ...core.errors import MalformedScheduleError
from ...core.models.schedule import Schedule
from ..context import get_context
from ..state import ValidationState

logger = logging.getLogger(__name__)


async def accept_node(state: ValidationState, config: RunnableConfig) -> Dict[str, Any]:
    ctx = get_context(config)
    ctx.checkpoint()
    ctx.report_progress(10, "Accepting schedule")

    schedule = Schedule.from_payload(state.get("payload"))
    documents = state.get("documents") or {}
    logger.info(f"Accepted schedule '{schedule.title or 'untitled'}': {len(schedule.tasks)} tasks, {len(documents)} documents")
    return {
        "schedule": schedule,
        "documents": documents,
        "repair_attempts": 0,
        "steps": [f"accept: {len(schedule.tasks)} tasks"],
    }


async def extract_node(state: ValidationState, config: RunnableConfig) -> Dict[str, Any]:
    ctx = get_context(config)
    ctx.checkpoint()
    ctx.report_progress(20, "Extracting claims")

    schedule = state["schedule"]
    results = ctx.extractor.extract_into(schedule, ctx.ledger)
    failed = [r for r in results if not r.success]
    if results and len(failed) == len(results):
        raise MalformedScheduleError(
            f"No claims could be extracted from any of the {len(results)} tasks: {failed[0].error}"
        )
    return {
        "extraction": results,
        "steps": [f"extract: {len(ctx.ledger)} claims, {len(failed)} task(s) failed"],
    }

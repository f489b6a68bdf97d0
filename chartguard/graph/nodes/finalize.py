"""
Final schema validation, audit trail assembly and optional run archive.
"""
import logging
from datetime import datetime
from typing import Any, Dict

from langchain_core.runnables import RunnableConfig

from ... import __version__
from ...core.aggregation import build_validated_schedule
from ...core.errors import MalformedScheduleError
from ...core.models.report import AuditTrail, JobResult
from ...core.schema import validated_schedule_errors
from ..context import get_context
from ..state import ValidationState

logger = logging.getLogger(__name__)


async def finalize_node(state: ValidationState, config: RunnableConfig) -> Dict[str, Any]:
    ctx = get_context(config)
    ctx.checkpoint()
    ctx.report_progress(92, "Final schema validation")

    report = state["report"]
    validated = build_validated_schedule(report)
    errors = validated_schedule_errors(validated)
    if errors:
        raise MalformedScheduleError(f"Final schema validation failed: {'; '.join(errors[:5])}")

    evaluation = state["evaluation"]
    trail = AuditTrail(
        claims=report.claims,
        citations=list(report.citations.values()),
        contradictions=report.contradictions,
        provenance=list(report.provenance.values()),
        gate_results=state.get("gate_history") or [evaluation],
        repair_log=state.get("repair_log") or [],
    )
    result = JobResult(validated_schedule=validated, audit_trail=trail, warnings=evaluation.warnings)

    run_dir = None
    if ctx.storage is not None:
        ctx.report_progress(96, "Storing results")
        run_dir = ctx.storage.start_run(validated.title, ctx.job_id)
        ctx.run_dir = run_dir
        ctx.storage.save_validated_schedule(run_dir, validated)
        ctx.storage.save_audit_trail(run_dir, trail)
        ctx.storage.save_claims(run_dir, ctx.ledger.all())
        ctx.storage.save_meta(
            run_dir,
            job_id=ctx.job_id,
            title=validated.title,
            start_time=ctx.started_at,
            end_time=datetime.now(),
            config=ctx.config.model_dump(mode="json"),
            stats={
                "tasks": len(validated.tasks),
                "claims": validated.summary.claim_count,
                "citation_coverage": validated.summary.citation_coverage,
                "mean_confidence": validated.summary.mean_confidence,
                "repair_attempts": state.get("repair_attempts", 0),
                "warnings": [w.name for w in evaluation.warnings],
            },
            version=__version__,
        )
        logger.info(f"Run archived to {run_dir}")

    ctx.report_progress(100, "Complete")
    return {
        "validated_schedule": validated,
        "result": result,
        "run_dir": str(run_dir) if run_dir else None,
        "steps": [f"finalize: {len(validated.tasks)} tasks, {len(evaluation.warnings)} warning(s)"],
    }

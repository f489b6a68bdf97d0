"""
Per-claim validation (fan-out / fan-in) and calibration nodes.

Claims and contradiction pair groups are independent, so they are checked in worker
threads bounded by a semaphore. asyncio.gather returns results in submission order,
which keeps the output in extraction order regardless of completion order.
"""
import asyncio
import logging
from collections import OrderedDict
from typing import Any, Dict, List, Tuple

from langchain_core.runnables import RunnableConfig

from ...core.models.claim import Claim
from ...core.verification.contradiction import subject_of, summarize, task_groups
from ..context import PipelineContext, get_context
from ..state import ValidationState

logger = logging.getLogger(__name__)


def _check_claim(ctx: PipelineContext, claim: Claim, documents: Dict[str, str]):
    citation = None
    if claim.source is not None:
        citation = ctx.citation_verifier.verify(claim, documents.get(claim.source.document_name))
    audit = ctx.provenance_auditor.audit(claim, documents)
    return citation, audit


def _check_pairs(ctx: PipelineContext, pairs: List[Tuple[Claim, Claim]]):
    return [ctx.contradiction_detector.detect(a, b) for a, b in pairs]


async def validate_node(state: ValidationState, config: RunnableConfig) -> Dict[str, Any]:
    ctx = get_context(config)
    ctx.checkpoint()
    ctx.report_progress(45, "Verifying citations, contradictions and provenance")

    documents = state.get("documents") or {}
    claims = ctx.ledger.all()  # ledger is read-only from here until repair
    semaphore = asyncio.Semaphore(ctx.config.max_workers)

    async def guarded(fn, *args):
        async with semaphore:
            return await asyncio.to_thread(fn, *args)

    # group candidate pairs by task group so each worker gets one group
    schedule = state["schedule"]
    groups = task_groups(schedule, schedule.task_ids())
    pairs = ctx.contradiction_detector.candidate_pairs(claims, groups)
    chunks: "OrderedDict[tuple, List[Tuple[Claim, Claim]]]" = OrderedDict()
    for a, b in pairs:
        key = (groups.get(a.task_id, a.task_id), a.type, subject_of(a))
        chunks.setdefault(key, []).append((a, b))

    claim_results, pair_results = await asyncio.gather(
        asyncio.gather(*[guarded(_check_claim, ctx, c, documents) for c in claims]),
        asyncio.gather(*[guarded(_check_pairs, ctx, chunk) for chunk in chunks.values()]),
    )

    citations, provenance = {}, {}
    for claim, (citation, audit) in zip(claims, claim_results):
        if citation is not None:
            citations[claim.id] = citation
        provenance[claim.id] = audit

    # restore global pair order across chunks
    position = {c.id: i for i, c in enumerate(claims)}
    found = [c for chunk in pair_results for c in chunk if c is not None]
    found.sort(key=lambda c: tuple(sorted(position[cid] for cid in c.claim_ids)))
    report = summarize(found, len(pairs))

    valid = sum(1 for r in citations.values() if r.valid)
    logger.info(
        f"Validated {len(claims)} claims: citations {valid}/{len(citations)} valid, "
        f"{len(found)} contradiction(s) in {len(pairs)} pair(s)"
    )
    return {
        "citations": citations,
        "provenance": provenance,
        "contradictions": report.contradictions,
        "pairs_checked": report.pairs_checked,
        "steps": [f"validate: {valid}/{len(citations)} citations valid, {len(found)} contradictions"],
    }


async def calibrate_node(state: ValidationState, config: RunnableConfig) -> Dict[str, Any]:
    ctx = get_context(config)
    ctx.checkpoint()
    ctx.report_progress(60, "Calibrating confidence")

    report = ctx.aggregator.build_report(
        state["schedule"],
        ctx.ledger.all(),
        state.get("citations") or {},
        state.get("provenance") or {},
        state.get("contradictions") or [],
    )
    return {
        "report": report,
        "steps": [f"calibrate: mean confidence {report.mean_confidence:.3f}"],
    }

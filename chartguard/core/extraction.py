"""
Claim Extractor.
Turns the bimodal fields of each schedule task into atomic, immutable claims.
"""
import hashlib
import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from .ledger import ClaimLedger
from .models.claim import (
    Claim,
    ClaimMeta,
    ClaimSource,
    ClaimType,
    ExplicitOrigin,
    InferredOrigin,
)
from .models.schedule import Origin, Schedule, ScheduleField, ScheduleTask, SourceCitation

logger = logging.getLogger(__name__)

DEFAULT_PRIOR = 0.5


class ExtractionResult(BaseModel):
    task_id: str
    claims: List[Claim] = Field(default_factory=list)
    success: bool = True
    error: Optional[str] = None


def claim_id(task_id: str, field: str, citation_index: int = 0) -> str:
    """Deterministic claim id: clm-<sha256(task|field|citation)[:12]>."""
    raw = f"{task_id}|{field}|{citation_index}"
    return "clm-" + hashlib.sha256(raw.encode("utf-8")).hexdigest()[:12]


def _statement(claim_type: ClaimType, value, unit: Optional[str]) -> str:
    if claim_type == ClaimType.DURATION:
        return f"Duration is {value} {unit or 'days'}"
    if claim_type == ClaimType.START_DATE:
        return f"Starts on {value}"
    if claim_type == ClaimType.DEPENDENCY:
        return f"Depends on task {value}"
    if claim_type == ClaimType.RESOURCE:
        return f"Requires {value}" + (f" {unit}" if unit else "")
    regulation = unit or "Regulatory"
    if isinstance(value, bool):
        return f"{regulation} approval is {'required' if value else 'optional'}"
    return f"{regulation} approval: {value}"


class ClaimExtractor:
    """
    Extracts claims from schedule tasks.

    One claim per (field, citation) for explicit fields and one per inferred field.
    An explicit field that cannot name a source document is extracted as an
    inference with a generated rationale, so every explicit claim has a source.
    """

    def extract(self, task: ScheduleTask, task_id: str) -> List[Claim]:
        claims: List[Claim] = []
        if task.duration is not None:
            claims.extend(self._from_field(task, task_id, ClaimType.DURATION, "duration", task.duration))
        if task.start_date is not None:
            claims.extend(self._from_field(task, task_id, ClaimType.START_DATE, "start_date", task.start_date))
        for i, dep in enumerate(task.dependencies):
            claims.extend(self._from_field(task, task_id, ClaimType.DEPENDENCY, f"dependencies[{i}]", dep))
        for i, res in enumerate(task.resources):
            claims.extend(self._from_field(task, task_id, ClaimType.RESOURCE, f"resources[{i}]", res))
        req = task.regulatory_requirement
        if req is not None:
            # unit carries the regulation name so claims compare per regulation
            req = req.model_copy(update={
                "value": req.is_required if req.value is None else req.value,
                "unit": req.unit or req.regulation,
            })
            claims.extend(self._from_field(task, task_id, ClaimType.REGULATORY, "regulatory_requirement", req))

        logger.debug(f"Extracted {len(claims)} claims from task {task_id}")
        return claims

    def extract_batch(self, schedule: Schedule) -> List[ExtractionResult]:
        """Extract every task; a failing task is reported, not raised."""
        results = []
        for task, task_id in zip(schedule.tasks, schedule.task_ids()):
            try:
                results.append(ExtractionResult(task_id=task_id, claims=self.extract(task, task_id)))
            except Exception as e:
                logger.warning(f"Claim extraction failed for task {task_id}: {e}")
                results.append(ExtractionResult(task_id=task_id, success=False, error=str(e)))
        return results

    def extract_into(self, schedule: Schedule, ledger: ClaimLedger) -> List[ExtractionResult]:
        results = self.extract_batch(schedule)
        for result in results:
            for claim in result.claims:
                ledger.add(claim)
        ok = sum(1 for r in results if r.success)
        logger.info(f"Extracted {len(ledger)} claims from {ok}/{len(results)} tasks")
        return results

    # ------------------------------------------------------------------

    def _from_field(
        self,
        task: ScheduleTask,
        task_id: str,
        claim_type: ClaimType,
        path: str,
        field: ScheduleField,
    ) -> List[Claim]:
        prior = self._prior(field, task)
        declared = field.origin
        if declared is None:
            declared = Origin.EXPLICIT if field.has_citations else Origin.INFERRED

        if declared == Origin.INFERRED:
            return [self._inferred(task, task_id, claim_type, path, field, prior)]

        if not field.has_citations:
            claim = self._inferred(
                task, task_id, claim_type, path, field, prior,
                rationale="Field was marked explicit but carries no source citation",
            )
            return [claim.annotated(**{ClaimMeta.ORIGIN_DOWNGRADED: "missing citation"})]

        claims = []
        for i, citation in enumerate(field.source_citations):
            value = citation.value if citation.value is not None else field.value
            if not citation.document_name:
                claim = self._inferred(
                    task, task_id, claim_type, path, field, prior,
                    rationale="Citation does not name a source document",
                    index=i, value=value,
                )
                claims.append(claim.annotated(**{ClaimMeta.ORIGIN_DOWNGRADED: "missing document name"}))
                continue
            claims.append(Claim(
                id=claim_id(task_id, path, i),
                task_id=task_id,
                type=claim_type,
                field=path,
                value=value,
                unit=field.unit,
                statement=_statement(claim_type, value, field.unit),
                confidence=prior,
                origin=ExplicitOrigin(source=self._source(citation)),
            ))
        return claims

    def _inferred(self, task, task_id, claim_type, path, field, prior, rationale=None, index=0, value=None) -> Claim:
        value = field.value if value is None else value
        producer = None
        if field.inference_rationale is not None:
            producer = field.inference_rationale.llm_provider
            rationale = rationale or field.inference_rationale.reasoning
        return Claim(
            id=claim_id(task_id, path, index),
            task_id=task_id,
            type=claim_type,
            field=path,
            value=value,
            unit=field.unit,
            statement=_statement(claim_type, value, field.unit),
            confidence=prior,
            origin=InferredOrigin(rationale=rationale or "", producer=producer),
        )

    @staticmethod
    def _source(citation: SourceCitation) -> ClaimSource:
        return ClaimSource(
            document_name=citation.document_name,
            paragraph_index=citation.paragraph_index,
            start_char=citation.start_char,
            end_char=citation.end_char,
            quote=citation.exact_quote or "",
            producer=citation.provider,
            retrieved_at=citation.retrieved_at,
            cited_at=citation.cited_at,
        )

    @staticmethod
    def _prior(field: ScheduleField, task: ScheduleTask) -> float:
        if field.confidence is not None:
            return field.confidence
        if task.confidence is not None:
            return task.confidence
        return DEFAULT_PRIOR

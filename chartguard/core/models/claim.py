"""
Atomic claim model.

A claim is an immutable, typed assertion extracted from one schedule field. Its
origin is a tagged union: an explicit claim always carries a resolvable source,
an inferred claim carries a rationale. Later adjustments (reclassification,
supersession, confidence boosts) are recorded as metadata on a copy of the claim;
`value` and `origin` never change.
"""
from datetime import datetime
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

from .schedule import Origin


class ClaimType(str, Enum):
    DURATION = "duration"
    START_DATE = "startDate"
    DEPENDENCY = "dependency"
    RESOURCE = "resource"
    REGULATORY = "regulatory"


class ClaimMeta:
    """Metadata keys written by the repair engine."""
    INFERENCE_RATIONALE = "inference_rationale"
    RECLASSIFIED_FROM = "reclassified_from"
    SUPERSEDED_BY = "superseded_by"
    SUPERSEDED_REASON = "superseded_reason"
    CONFIDENCE_BOOST = "confidence_boost"
    FLAGS = "flags"
    ORIGIN_DOWNGRADED = "origin_downgraded"


class ClaimSource(BaseModel):
    """Resolvable location of an explicit claim in a research document."""
    model_config = ConfigDict(frozen=True)

    document_name: str = Field(..., min_length=1)
    paragraph_index: Optional[int] = None
    start_char: Optional[int] = None
    end_char: Optional[int] = None
    quote: str = ""
    producer: Optional[str] = None
    retrieved_at: Optional[datetime] = None
    cited_at: Optional[datetime] = None


class ExplicitOrigin(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["explicit"] = "explicit"
    source: ClaimSource


class InferredOrigin(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["inferred"] = "inferred"
    rationale: str = ""
    producer: Optional[str] = None


ClaimOrigin = Annotated[Union[ExplicitOrigin, InferredOrigin], Field(discriminator="kind")]


class Claim(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str
    task_id: str
    type: ClaimType
    field: str = Field(..., description="Field path inside the task, e.g. 'duration' or 'resources[1]'")
    value: Any = None
    unit: Optional[str] = None
    statement: str = ""
    confidence: float = Field(0.5, description="Prior confidence before calibration (not range-checked)")
    origin: ClaimOrigin
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @property
    def declared_origin(self) -> Origin:
        return Origin(self.origin.kind)

    @property
    def source(self) -> Optional[ClaimSource]:
        return self.origin.source if isinstance(self.origin, ExplicitOrigin) else None

    @property
    def is_reclassified(self) -> bool:
        return ClaimMeta.INFERENCE_RATIONALE in self.metadata

    @property
    def effective_origin(self) -> Origin:
        """Declared origin, unless a repair attached an inference rationale."""
        if self.is_reclassified:
            return Origin.INFERRED
        return self.declared_origin

    @property
    def requires_citation(self) -> bool:
        return self.effective_origin == Origin.EXPLICIT

    @property
    def producer(self) -> Optional[str]:
        if isinstance(self.origin, ExplicitOrigin):
            return self.origin.source.producer
        return self.origin.producer

    @property
    def rationale(self) -> Optional[str]:
        if self.is_reclassified:
            return self.metadata[ClaimMeta.INFERENCE_RATIONALE]
        if isinstance(self.origin, InferredOrigin):
            return self.origin.rationale
        return None

    @property
    def superseded_by(self) -> Optional[str]:
        return self.metadata.get(ClaimMeta.SUPERSEDED_BY)

    @property
    def flags(self) -> List[str]:
        return list(self.metadata.get(ClaimMeta.FLAGS, []))

    def annotated(self, **metadata: Any) -> "Claim":
        """Return a copy with extra metadata merged in."""
        return self.model_copy(update={"metadata": {**self.metadata, **metadata}})

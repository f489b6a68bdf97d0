"""
Shared fixtures: source documents, draft schedules and a synchronous validation pass.
"""
from pathlib import Path
from typing import Dict, Optional

import pytest

from chartguard.config.settings import ValidationSettings
from chartguard.core.aggregation import ValidationAggregator
from chartguard.core.extraction import ClaimExtractor
from chartguard.core.ledger import ClaimLedger
from chartguard.core.models.schedule import Schedule
from chartguard.core.quality.repair import RepairWorkspace
from chartguard.core.verification.citation import CitationVerifier
from chartguard.core.verification.contradiction import ContradictionDetector, task_groups
from chartguard.core.verification.provenance import ProvenanceAuditor

DOCUMENTS_DIR = Path(__file__).parent / "fixtures" / "documents"


def load_documents() -> Dict[str, str]:
    return {p.name: p.read_text(encoding="utf-8") for p in sorted(DOCUMENTS_DIR.glob("*.txt"))}


def cite(documents: Dict[str, str], name: str, quote: str, provider: Optional[str] = "GEMINI", **extra) -> dict:
    """Citation dict whose character range covers `quote` in document `name`."""
    start = documents[name].index(quote)
    return {
        "document_name": name,
        "start_char": start,
        "end_char": start + len(quote),
        "exact_quote": quote,
        "provider": provider,
        **extra,
    }


@pytest.fixture
def documents() -> Dict[str, str]:
    return load_documents()


@pytest.fixture
def schedule_payload(documents) -> dict:
    """Clean draft: every explicit field verifies and every gate passes."""
    return {
        "title": "Device launch",
        "tasks": [
            {
                "id": "task-1",
                "name": "Prepare FDA submission",
                "confidence": 0.8,
                "duration": {
                    "value": 90,
                    "unit": "days",
                    "origin": "explicit",
                    "confidence": 0.8,
                    "source_citations": [cite(documents, "fda_guidance.txt", "90 days")],
                },
                "resources": [
                    {
                        "value": "1 regulatory affairs specialist",
                        "origin": "explicit",
                        "confidence": 0.8,
                        "source_citations": [cite(documents, "fda_guidance.txt", "regulatory affairs specialist")],
                    }
                ],
                "regulatory_requirement": {
                    "is_required": True,
                    "regulation": "FDA",
                    "origin": "explicit",
                    "confidence": 0.9,
                    "source_citations": [cite(documents, "fda_guidance.txt", "FDA premarket review")],
                },
            },
            {
                "id": "task-2",
                "name": "Activate clinical sites",
                "confidence": 0.7,
                "related_task_ids": ["task-1"],
                "start_date": {
                    "value": "2025-03-03",
                    "origin": "explicit",
                    "confidence": 0.7,
                    "source_citations": [cite(documents, "site_plan.txt", "start on 2025-03-03")],
                },
                "dependencies": [
                    {
                        "value": "task-1",
                        "origin": "inferred",
                        "confidence": 0.6,
                        "inference_rationale": {
                            "reasoning": "Sites open once the submission is filed",
                            "llm_provider": "GEMINI",
                        },
                    }
                ],
            },
        ],
    }


@pytest.fixture
def low_coverage_payload(documents) -> dict:
    """Five explicit durations, two of which quote text absent from the document (60% coverage)."""
    names = ["Draft protocol", "Build budget", "Hire staff", "Order supplies", "Train monitors"]
    tasks = []
    for i, name in enumerate(names):
        if i < 3:
            citation = cite(documents, "fda_guidance.txt", "90 days")
        else:
            citation = {"document_name": "fda_guidance.txt", "exact_quote": "45 business days", "provider": "GEMINI"}
        tasks.append({
            "id": f"task-{i + 1}",
            "name": name,
            "confidence": 0.7,
            "duration": {
                "value": 90 if i < 3 else 45,
                "unit": "days",
                "origin": "explicit",
                "confidence": 0.7,
                "source_citations": [citation],
            },
        })
    return {"title": "Low coverage draft", "tasks": tasks}


@pytest.fixture
def conflicting_payload(documents) -> dict:
    """One duration cited by two sources that disagree (90 vs 60 days)."""
    return {
        "title": "Conflicting estimates",
        "tasks": [
            {
                "id": "task-1",
                "name": "Regulatory review",
                "confidence": 0.8,
                "duration": {
                    "value": 90,
                    "unit": "days",
                    "origin": "explicit",
                    "confidence": 0.8,
                    "source_citations": [
                        cite(documents, "fda_guidance.txt", "90 days"),
                        cite(documents, "vendor_estimate.txt", "60 days", value=60),
                    ],
                },
            }
        ],
    }


@pytest.fixture
def build_workspace():
    """Run extraction and per-claim checks synchronously and hand back a repair workspace."""

    def _build(payload, documents: Dict[str, str], config: Optional[ValidationSettings] = None) -> RepairWorkspace:
        config = config or ValidationSettings()
        schedule = Schedule.from_payload(payload)
        ledger = ClaimLedger()
        ClaimExtractor().extract_into(schedule, ledger)
        claims = ledger.all()

        verifier = CitationVerifier(config)
        citations = {
            c.id: verifier.verify(c, documents.get(c.source.document_name))
            for c in claims if c.source is not None
        }
        auditor = ProvenanceAuditor(config)
        provenance = {c.id: auditor.audit(c, documents) for c in claims}
        groups = task_groups(schedule, schedule.task_ids())
        contradictions = ContradictionDetector(config).detect_all(claims, groups).contradictions
        return RepairWorkspace(ledger, schedule, citations, provenance, contradictions, ValidationAggregator(config))

    return _build


@pytest.fixture
def cite_quote(documents):
    """cite() bound to the fixture documents."""

    def _cite(name: str, quote: str, **kwargs) -> dict:
        return cite(documents, name, quote, **kwargs)

    return _cite

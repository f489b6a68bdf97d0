"""
Keyword/pattern heuristic for regulation-bearing tasks.
"""
import re
from typing import List, Optional, Tuple

from ..models.schedule import ScheduleTask

GENERAL_COMPLIANCE = "General Compliance"

REGULATION_PATTERNS: List[Tuple[str, re.Pattern]] = [
    ("FDA", re.compile(r"\bFDA\b|510\(k\)|\bpremarket\b|\bclinical trials?\b", re.IGNORECASE)),
    ("HIPAA", re.compile(r"\bHIPAA\b|\bprotected health\b|\bPHI\b|\bpatient privacy\b", re.IGNORECASE)),
    ("SOX", re.compile(r"\bSarbanes[- ]Oxley\b|\bSOX\b|\bfinancial audit\b", re.IGNORECASE)),
    ("GDPR", re.compile(r"\bGDPR\b|\bdata protection\b|\bprivacy regulation\b", re.IGNORECASE)),
    ("PCI", re.compile(r"\bPCI[- ]DSS\b|\bpayment card\b|\bcardholder data\b", re.IGNORECASE)),
]


def detect_regulation(text: Optional[str]) -> str:
    """First matching regulation, or 'General Compliance'."""
    for regulation, pattern in REGULATION_PATTERNS:
        if text and pattern.search(text):
            return regulation
    return GENERAL_COMPLIANCE


def regulation_for_task(task: ScheduleTask) -> Optional[str]:
    """Specific regulation suggested by the task name, None when nothing specific matches."""
    found = detect_regulation(task.name)
    return None if found == GENERAL_COMPLIANCE else found


def is_flagged(task: ScheduleTask) -> bool:
    req = task.regulatory_requirement
    return bool(req is not None and req.is_required)

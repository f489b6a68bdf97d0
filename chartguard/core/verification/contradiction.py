"""
Contradiction Detector.
Pairwise numerical / temporal / logical conflict detection between claims that share
a type and a subject and belong to related tasks.
"""
import calendar
import hashlib
import logging
import math
import re
from collections import Counter, defaultdict
from datetime import date, datetime
from typing import Dict, Iterable, List, Optional, Tuple

from ...config.settings import ValidationSettings
from ..models.claim import Claim, ClaimType
from ..models.results import Contradiction, ContradictionReport, ContradictionType, Severity
from ..models.schedule import Schedule

logger = logging.getLogger(__name__)

# =========================================================
# Value parsing
# =========================================================

UNIT_DAYS = {
    "day": 1, "days": 1, "d": 1,
    "week": 7, "weeks": 7, "wk": 7, "wks": 7, "w": 7,
    "month": 30, "months": 30, "mo": 30, "mos": 30,
    "quarter": 91, "quarters": 91, "q": 91,
    "year": 365, "years": 365, "yr": 365, "yrs": 365, "y": 365,
}

# "1,200" is grouped thousands; any other comma between digits is a decimal comma
_GROUPED = r"-?\d{1,3}(?:,\d{3})+(?:\.\d+)?"
_NUMBER = re.compile(_GROUPED + r"(?!\d)|-?\d+(?:[.,]\d+)?")
_WORD = re.compile(r"[a-z]+")


def parse_magnitude(value, unit: Optional[str] = None, as_days: bool = False) -> Optional[float]:
    """Numeric magnitude of a claim value; durations are normalised to days."""
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        number = float(value)
        text_unit = unit
    elif isinstance(value, str):
        m = _NUMBER.search(value)
        if not m:
            return None
        raw = m.group(0)
        if re.fullmatch(_GROUPED, raw):
            raw = raw.replace(",", "")
        number = float(raw.replace(",", "."))
        rest = value[m.end():].strip().split()
        text_unit = rest[0] if rest else unit
    else:
        return None
    if math.isnan(number):
        return None
    if as_days:
        factor = UNIT_DAYS.get((text_unit or "days").strip().lower().rstrip("."))
        if factor is None:
            return None
        number *= factor
    return abs(number)


class DateWindow:
    """A date with its precision: '2025-03' covers the whole of March 2025."""

    def __init__(self, start: date, end: date):
        self.start = start
        self.end = end

    def overlaps(self, other: "DateWindow") -> bool:
        return max(self.start, other.start) <= min(self.end, other.end)

    def gap_days(self, other: "DateWindow") -> int:
        if self.overlaps(other):
            return 0
        if self.end < other.start:
            return (other.start - self.end).days
        return (self.start - other.end).days

    @staticmethod
    def parse(value) -> Optional["DateWindow"]:
        """Parses date/datetime objects and 'YYYY-MM-DD', 'YYYY-MM', 'YYYY' strings."""
        if isinstance(value, datetime):
            return DateWindow(value.date(), value.date())
        if isinstance(value, date):
            return DateWindow(value, value)
        if not isinstance(value, str):
            return None
        text = value.strip().replace("/", "-").replace(".", "-")
        try:
            if len(text) >= 10 and text[4] == "-":
                d = datetime.strptime(text[:10], "%Y-%m-%d").date()
                return DateWindow(d, d)
            if len(text) == 7 and text[4] == "-":
                year, month = int(text[:4]), int(text[5:7])
                last = calendar.monthrange(year, month)[1]
                return DateWindow(date(year, month, 1), date(year, month, last))
            if len(text) == 4 and text.isdigit():
                year = int(text)
                return DateWindow(date(year, 1, 1), date(year, 12, 31))
        except ValueError:
            return None
        return None


# Opposite keyword pairs for the logical rule
ANTONYMS: List[Tuple[str, str]] = [
    ("required", "optional"),
    ("mandatory", "optional"),
    ("always", "never"),
    ("must", "may"),
    ("included", "excluded"),
    ("sequential", "parallel"),
    ("confirmed", "unconfirmed"),
    ("approved", "rejected"),
    ("before", "after"),
]


def subject_of(claim: Claim) -> str:
    """Comparable subject; only claims with equal subjects are paired."""
    if claim.type == ClaimType.DEPENDENCY:
        return f"dependency:{str(claim.value).strip().lower()}"
    if claim.type == ClaimType.RESOURCE:
        text = str(claim.value if claim.value is not None else "")
        if claim.unit:
            text = f"{text} {claim.unit}"
        noun = " ".join(_WORD.findall(text.lower()))
        return f"resource:{noun}"
    if claim.type == ClaimType.REGULATORY:
        return f"regulatory:{(claim.unit or '').strip().lower()}"
    return claim.type.value


def _words(claim: Claim) -> set:
    return set(_WORD.findall(f"{claim.statement} {claim.value}".lower()))


# =========================================================
# Task grouping
# =========================================================

def task_groups(schedule: Optional[Schedule], task_ids: Iterable[str]) -> Dict[str, str]:
    """
    Union-find over explicit task links.

    Returns:
        task id -> group root. Tasks without links form their own group.
    """
    parent: Dict[str, str] = {tid: tid for tid in task_ids}

    def find(t):
        if parent[t] != t:
            parent[t] = find(parent[t])
        return parent[t]

    def union(a, b):
        ra, rb = find(a), find(b)
        if ra != rb:
            # smaller id becomes the root so grouping does not depend on link order
            if rb < ra:
                ra, rb = rb, ra
            parent[rb] = ra

    if schedule is not None:
        for task, tid in zip(schedule.tasks, schedule.task_ids()):
            parent.setdefault(tid, tid)
            for other in task.related_task_ids:
                parent.setdefault(other, other)
                union(tid, other)

    return {t: find(t) for t in parent}


# =========================================================
# Detector
# =========================================================

class ContradictionDetector:
    """Rules are evaluated numerical -> temporal -> logical; the first one that fires wins."""

    def __init__(self, config: Optional[ValidationSettings] = None):
        config = config or ValidationSettings()
        self.numerical_tolerance = config.numerical_tolerance
        self.temporal_tolerance = config.temporal_tolerance_days
        self.temporal_high = config.temporal_high_multiple
        self.temporal_medium = config.temporal_medium_multiple
        self.logical_severity = config.logical_severity

    def detect(self, a: Claim, b: Claim) -> Optional[Contradiction]:
        """Compare two claims; the result does not depend on argument order."""
        if a.id == b.id or a.type != b.type:
            return None
        first, second = sorted((a, b), key=lambda c: c.id)
        subject = subject_of(first)
        if subject != subject_of(second):
            return None
        try:
            for rule in (self._numerical, self._temporal, self._logical):
                found = rule(first, second, subject)
                if found is not None:
                    return found
        except Exception as e:
            logger.warning(f"Contradiction check failed for {first.id}/{second.id}: {e}")
        return None

    def candidate_pairs(self, claims: List[Claim], groups: Dict[str, str]) -> List[Tuple[Claim, Claim]]:
        """
        Pairs sharing type, subject and task group, in extraction order.
        Superseded claims are still paired; resolution is tracked separately.
        """
        buckets: Dict[Tuple[str, ClaimType, str], List[Claim]] = defaultdict(list)
        for claim in claims:
            group = groups.get(claim.task_id, claim.task_id)
            buckets[(group, claim.type, subject_of(claim))].append(claim)
        position = {c.id: i for i, c in enumerate(claims)}
        pairs = []
        for bucket in buckets.values():
            for i in range(len(bucket)):
                for j in range(i + 1, len(bucket)):
                    pairs.append((bucket[i], bucket[j]))
        pairs.sort(key=lambda p: (position[p[0].id], position[p[1].id]))
        return pairs

    def detect_all(self, claims: List[Claim], groups: Optional[Dict[str, str]] = None) -> ContradictionReport:
        groups = groups if groups is not None else {c.task_id: c.task_id for c in claims}
        pairs = self.candidate_pairs(claims, groups)
        found = [c for c in (self.detect(a, b) for a, b in pairs) if c is not None]
        return summarize(found, len(pairs))

    # ----- rules -----

    def _numerical(self, a: Claim, b: Claim, subject: str) -> Optional[Contradiction]:
        if a.type not in (ClaimType.DURATION, ClaimType.RESOURCE):
            return None
        as_days = a.type == ClaimType.DURATION
        x = parse_magnitude(a.value, a.unit, as_days)
        y = parse_magnitude(b.value, b.unit, as_days)
        if x is None or y is None:
            return None
        pct = percent_diff(x, y)
        if pct <= self.numerical_tolerance:
            return None
        if pct >= 50:
            severity = Severity.HIGH
        elif pct >= 25:
            severity = Severity.MEDIUM
        else:
            severity = Severity.LOW
        shown = "inf" if math.isinf(pct) else f"{pct:.1f}"
        return _make(
            a, b, ContradictionType.NUMERICAL, severity, subject,
            f"{subject}: {a.value} vs {b.value} differ by {shown}%",
            pct,
        )

    def _temporal(self, a: Claim, b: Claim, subject: str) -> Optional[Contradiction]:
        wa, wb = DateWindow.parse(a.value), DateWindow.parse(b.value)
        if wa is None or wb is None:
            return None
        gap = wa.gap_days(wb)
        if gap <= self.temporal_tolerance:
            return None
        if gap > self.temporal_tolerance * self.temporal_high:
            severity = Severity.HIGH
        elif gap > self.temporal_tolerance * self.temporal_medium:
            severity = Severity.MEDIUM
        else:
            severity = Severity.LOW
        return _make(
            a, b, ContradictionType.TEMPORAL, severity, subject,
            f"{subject}: {a.value} vs {b.value} are {gap} days apart",
            float(gap),
        )

    def _logical(self, a: Claim, b: Claim, subject: str) -> Optional[Contradiction]:
        wa, wb = _words(a), _words(b)
        for left, right in ANTONYMS:
            a_left, a_right = left in wa, right in wa
            b_left, b_right = left in wb, right in wb
            if (a_left and not a_right and b_right and not b_left) or (a_right and not a_left and b_left and not b_right):
                return _make(
                    a, b, ContradictionType.LOGICAL, self.logical_severity, subject,
                    f"{subject}: '{a.statement}' contradicts '{b.statement}' ({left} vs {right})",
                    None,
                )
        return None


def percent_diff(x: float, y: float) -> float:
    low = min(x, y)
    if x == y:
        return 0.0
    if low == 0:
        return math.inf
    return abs(x - y) / low * 100


def _make(a: Claim, b: Claim, kind: ContradictionType, severity: Severity, subject: str,
          description: str, metric: Optional[float]) -> Contradiction:
    ids = tuple(sorted((a.id, b.id)))
    digest = hashlib.sha256(f"{ids[0]}|{ids[1]}|{kind.value}".encode("utf-8")).hexdigest()[:12]
    return Contradiction(
        id=f"ctr-{digest}",
        claim_ids=ids,
        type=kind,
        severity=severity,
        subject=subject,
        description=description,
        metric=None if metric is None or math.isinf(metric) else round(metric, 4),
    )


def summarize(contradictions: List[Contradiction], pairs_checked: int) -> ContradictionReport:
    by_type = Counter(c.type.value for c in contradictions)
    by_severity = Counter(c.severity.value for c in contradictions)
    if contradictions:
        logger.info(f"Detected {len(contradictions)} contradictions over {pairs_checked} pairs: {dict(by_severity)}")
    return ContradictionReport(
        contradictions=contradictions,
        pairs_checked=pairs_checked,
        by_type=dict(by_type),
        by_severity=dict(by_severity),
    )

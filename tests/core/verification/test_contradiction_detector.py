"""
ContradictionDetector tests
"""
import pytest

from chartguard.config.settings import ValidationSettings
from chartguard.core.models.claim import Claim, ClaimType, InferredOrigin
from chartguard.core.models.results import ContradictionType, Severity
from chartguard.core.models.schedule import Schedule
from chartguard.core.verification.contradiction import (
    ContradictionDetector,
    DateWindow,
    parse_magnitude,
    subject_of,
    task_groups,
)

STATEMENTS = {
    ClaimType.DURATION: lambda v, u: f"Duration is {v} {u or 'days'}",
    ClaimType.START_DATE: lambda v, u: f"Starts on {v}",
    ClaimType.RESOURCE: lambda v, u: f"Requires {v}",
    ClaimType.REGULATORY: lambda v, u: f"{u} approval is {'required' if v else 'optional'}",
}


def claim(cid, value, claim_type=ClaimType.DURATION, unit="days", task_id="task-1") -> Claim:
    return Claim(
        id=cid,
        task_id=task_id,
        type=claim_type,
        field=claim_type.value,
        value=value,
        unit=unit,
        statement=STATEMENTS[claim_type](value, unit),
        origin=InferredOrigin(rationale="estimate"),
    )


class TestValueParsing:

    def test_duration_units(self):
        assert parse_magnitude(2, "weeks", as_days=True) == 14
        assert parse_magnitude("3 months", None, as_days=True) == 90
        assert parse_magnitude(1, "quarter", as_days=True) == 91
        assert parse_magnitude(1, "year", as_days=True) == 365
        assert parse_magnitude("about 12", "days", as_days=True) == 12
        assert parse_magnitude("soon", "days") is None
        assert parse_magnitude(True, "days") is None

    def test_thousands_separator(self):
        assert parse_magnitude("1,200 hours") == 1200
        assert parse_magnitude("12,500,000.5 units") == 12500000.5
        assert parse_magnitude("2,5 engineers") == 2.5
        assert parse_magnitude("1,2345 units") == 1.2345

    def test_unknown_duration_unit(self):
        assert parse_magnitude(2, "hours", as_days=True) is None
        assert parse_magnitude("3-6 months", None, as_days=True) is None
        assert parse_magnitude("10 business days", None, as_days=True) is None
        assert parse_magnitude(2, None, as_days=True) == 2

    def test_date_windows(self):
        march = DateWindow.parse("2025-03")
        assert march.overlaps(DateWindow.parse("2025-03-15"))
        assert DateWindow.parse("2025-03-01").gap_days(DateWindow.parse("2025-03-20")) == 19
        assert DateWindow.parse("2025").overlaps(DateWindow.parse("2025-12-31"))
        assert DateWindow.parse("next spring") is None
        assert DateWindow.parse("2025-13-01") is None


class TestContradictionDetector:

    @pytest.fixture
    def detector(self):
        return ContradictionDetector(ValidationSettings())

    def test_numerical_fifty_percent_is_high(self, detector):
        result = detector.detect(claim("clm-a", 90), claim("clm-b", 60))

        assert result.type == ContradictionType.NUMERICAL
        assert result.metric == pytest.approx(50.0)
        assert result.severity == Severity.HIGH

    def test_numerical_severity_boundaries(self, detector):
        below = detector.detect(claim("clm-a", 60), claim("clm-b", 89.94))
        above = detector.detect(claim("clm-a", 60), claim("clm-b", 90.06))
        assert below.metric == pytest.approx(49.9)
        assert below.severity == Severity.MEDIUM
        assert above.metric == pytest.approx(50.1)
        assert above.severity == Severity.HIGH

        low = detector.detect(claim("clm-a", 100), claim("clm-b", 115))
        assert low.severity == Severity.LOW

    def test_within_tolerance(self, detector):
        assert detector.detect(claim("clm-a", 60), claim("clm-b", 65)) is None

    def test_units_are_normalised(self, detector):
        assert detector.detect(claim("clm-a", 3, unit="months"), claim("clm-b", 90)) is None
        assert detector.detect(claim("clm-a", 2, unit="weeks"), claim("clm-b", 14)) is None
        result = detector.detect(claim("clm-a", 1, unit="quarter"), claim("clm-b", 30))
        assert result.severity == Severity.HIGH

    def test_unknown_units_are_not_compared(self, detector):
        assert detector.detect(claim("clm-a", 2, unit="hours"), claim("clm-b", 2)) is None
        assert detector.detect(claim("clm-a", "3-6 months", unit=None), claim("clm-b", 3)) is None

    def test_grouped_thousands(self, detector):
        a = claim("clm-a", "1,200 hours", ClaimType.RESOURCE, None)
        b = claim("clm-b", "1000 hours", ClaimType.RESOURCE, None)

        result = detector.detect(a, b)

        assert result.type == ContradictionType.NUMERICAL
        assert result.metric == pytest.approx(20.0)
        assert result.severity == Severity.LOW

    def test_symmetry(self, detector):
        a, b = claim("clm-a", 90), claim("clm-b", 60)
        assert detector.detect(a, b) == detector.detect(b, a)

        x = claim("clm-x", "2025-03-01", ClaimType.START_DATE, None)
        y = claim("clm-y", "2025-05-01", ClaimType.START_DATE, None)
        assert detector.detect(x, y) == detector.detect(y, x)

    def test_ids_are_deterministic(self, detector):
        first = detector.detect(claim("clm-a", 90), claim("clm-b", 60))
        second = detector.detect(claim("clm-b", 60), claim("clm-a", 90))
        assert first.id == second.id
        assert first.id.startswith("ctr-")
        assert first.claim_ids == ("clm-a", "clm-b")

    def test_temporal(self, detector):
        base = claim("clm-a", "2025-03-01", ClaimType.START_DATE, None)
        assert detector.detect(base, claim("clm-b", "2025-03-05", ClaimType.START_DATE, None)) is None

        medium = detector.detect(base, claim("clm-b", "2025-03-20", ClaimType.START_DATE, None))
        assert medium.type == ContradictionType.TEMPORAL
        assert medium.severity == Severity.MEDIUM
        assert medium.metric == 19

        high = detector.detect(base, claim("clm-b", "2025-05-01", ClaimType.START_DATE, None))
        assert high.severity == Severity.HIGH

    def test_temporal_precision_overlap(self, detector):
        month = claim("clm-a", "2025-03", ClaimType.START_DATE, None)
        day = claim("clm-b", "2025-03-28", ClaimType.START_DATE, None)
        assert detector.detect(month, day) is None

    def test_logical(self, detector):
        required = claim("clm-a", True, ClaimType.REGULATORY, "FDA")
        optional = claim("clm-b", False, ClaimType.REGULATORY, "FDA")

        result = detector.detect(required, optional)

        assert result.type == ContradictionType.LOGICAL
        assert result.severity == Severity.MEDIUM

    def test_logical_severity_is_configurable(self):
        detector = ContradictionDetector(ValidationSettings(logical_severity="high"))
        result = detector.detect(
            claim("clm-a", True, ClaimType.REGULATORY, "FDA"),
            claim("clm-b", False, ClaimType.REGULATORY, "FDA"),
        )
        assert result.severity == Severity.HIGH

    def test_different_subjects_never_conflict(self, detector):
        assert detector.detect(
            claim("clm-a", True, ClaimType.REGULATORY, "FDA"),
            claim("clm-b", False, ClaimType.REGULATORY, "HIPAA"),
        ) is None
        assert detector.detect(
            claim("clm-a", "2 nurses", ClaimType.RESOURCE, None),
            claim("clm-b", "5 engineers", ClaimType.RESOURCE, None),
        ) is None
        assert detector.detect(claim("clm-a", 90), claim("clm-b", "2025-03-01", ClaimType.START_DATE, None)) is None

    def test_resource_quantities(self, detector):
        result = detector.detect(
            claim("clm-a", "2 coordinators", ClaimType.RESOURCE, None),
            claim("clm-b", "4 coordinators", ClaimType.RESOURCE, None),
        )
        assert subject_of(claim("clm-a", "2 coordinators", ClaimType.RESOURCE, None)) == "resource:coordinators"
        assert result.type == ContradictionType.NUMERICAL
        assert result.severity == Severity.HIGH

    def test_same_claim_is_not_a_conflict(self, detector):
        a = claim("clm-a", 90)
        assert detector.detect(a, a) is None


class TestPairing:

    def test_task_groups_follow_links(self):
        schedule = Schedule.from_payload({"tasks": [
            {"id": "t3"},
            {"id": "t2", "related_task_ids": ["t1"]},
            {"id": "t1"},
            {"id": "t4", "related_task_ids": ["t3"]},
        ]})
        groups = task_groups(schedule, schedule.task_ids())
        assert groups["t2"] == groups["t1"] == "t1"
        assert groups["t4"] == groups["t3"] == "t3"

    def test_only_related_tasks_are_paired(self):
        detector = ContradictionDetector(ValidationSettings())
        claims = [
            claim("clm-1", 90, task_id="t1"),
            claim("clm-2", 60, task_id="t2"),
            claim("clm-3", 30, task_id="t3"),
        ]
        groups = {"t1": "t1", "t2": "t1", "t3": "t3"}

        report = detector.detect_all(claims, groups)

        assert report.pairs_checked == 1
        assert [c.claim_ids for c in report.contradictions] == [("clm-1", "clm-2")]
        assert report.by_severity == {"high": 1}

    def test_pairwise_reporting_for_three_claims(self):
        detector = ContradictionDetector(ValidationSettings())
        claims = [claim("clm-1", 90), claim("clm-2", 60), claim("clm-3", 30)]

        report = detector.detect_all(claims)

        assert report.pairs_checked == 3
        assert len(report.contradictions) == 3
        assert [c.claim_ids for c in report.contradictions] == [
            ("clm-1", "clm-2"), ("clm-1", "clm-3"), ("clm-2", "clm-3"),
        ]

"""
Citation Verifier.
Confirms that the quote cited by an explicit claim appears in its source document.

Matching order, first hit wins:
1. exact (case-insensitive, whitespace-normalized) inside the cited range
2. fuzzy (Levenshtein over equal-length windows) inside the cited range
3. exact, then fuzzy, inside the cited range widened by the context window
"""
import logging
import re
from typing import Dict, List, Mapping, Optional, Tuple

from rapidfuzz.distance import Levenshtein

from ...config.settings import ValidationSettings
from ..models.claim import Claim
from ..models.results import (
    CitationBatchResult,
    CitationVerificationResult,
    MatchDiagnostics,
    MatchType,
)

logger = logging.getLogger(__name__)

_WS = re.compile(r"\s+")


def normalize(text: str) -> Tuple[str, List[int]]:
    """
    Lowercase and collapse whitespace runs to one space.

    Returns:
        (normalized text, offsets) where offsets[i] is the position in `text`
        of the i-th normalized character.
    """
    out: List[str] = []
    offsets: List[int] = []
    pending_space = False
    for i, ch in enumerate(text):
        if ch.isspace():
            pending_space = bool(out)
            continue
        if pending_space:
            out.append(" ")
            offsets.append(i - 1)
            pending_space = False
        out.append(ch.lower())
        offsets.append(i)
    return "".join(out), offsets


class CitationVerifier:
    """
    Verifies explicit claims against pre-extracted document text.
    Never raises: anything that cannot be confirmed is `valid=False`.
    """

    def __init__(self, config: Optional[ValidationSettings] = None):
        config = config or ValidationSettings()
        self.similarity_threshold = config.citation_similarity_threshold
        self.max_edit_distance = config.citation_max_edit_distance
        self.context_window = config.context_window

    def verify(self, claim: Claim, document_text: Optional[str]) -> CitationVerificationResult:
        try:
            return self._verify(claim, document_text)
        except Exception as e:
            logger.warning(f"Citation check failed for {claim.id}: {e}")
            return self._invalid(claim.id, f"verification error: {e}")

    def verify_batch(self, claims: List[Claim], documents: Mapping[str, str]) -> CitationBatchResult:
        """Verify every explicit claim in order; inferred claims are skipped."""
        results = []
        for claim in claims:
            if claim.source is None:
                continue
            results.append(self.verify(claim, documents.get(claim.source.document_name)))
        valid = sum(1 for r in results if r.valid)
        return CitationBatchResult(results=results, valid_count=valid, invalid_count=len(results) - valid)

    # ------------------------------------------------------------------

    def _verify(self, claim: Claim, document_text: Optional[str]) -> CitationVerificationResult:
        source = claim.source
        if source is None:
            return self._invalid(claim.id, "claim has no citation")
        if document_text is None:
            return self._invalid(claim.id, f"document not found: {source.document_name}")

        quote, _ = normalize(source.quote or "")
        quote = quote.strip()
        if not quote:
            return self._invalid(claim.id, "empty quote")

        doc_len = len(document_text)
        start = 0 if source.start_char is None else min(max(source.start_char, 0), doc_len)
        end = doc_len if source.end_char is None else min(max(source.end_char, 0), doc_len)
        if end < start:
            end = start

        # 1 + 2: inside the cited range
        hit = self._exact(quote, document_text, start, end)
        if hit:
            return self._found(claim.id, MatchType.EXACT, 1.0, 0, start, end, hit)
        fuzzy = self._fuzzy(quote, document_text, start, end)
        if fuzzy and fuzzy[0] is not None:
            distance, span, _ = fuzzy
            return self._found(claim.id, MatchType.FUZZY, self._similarity(quote, distance), distance, start, end, span)

        # 3: widened window
        w_start = max(0, start - self.context_window)
        w_end = min(doc_len, end + self.context_window)
        hit = self._exact(quote, document_text, w_start, w_end)
        if hit:
            return self._found(claim.id, MatchType.CONTEXT_SEARCH, 1.0, 0, w_start, w_end, hit)
        context = self._fuzzy(quote, document_text, w_start, w_end)
        if context and context[0] is not None:
            distance, span, _ = context
            return self._found(
                claim.id, MatchType.CONTEXT_SEARCH, self._similarity(quote, distance), distance, w_start, w_end, span
            )

        best = None
        for attempt in (fuzzy, context):
            if attempt and attempt[2] is not None:
                best = attempt[2] if best is None else min(best, attempt[2])
        logger.debug(f"No match for {claim.id} in {source.document_name}")
        return CitationVerificationResult(
            claim_id=claim.id,
            valid=False,
            match_type=MatchType.NONE,
            score=self._similarity(quote, best) if best is not None else 0.0,
            diagnostics=MatchDiagnostics(
                edit_distance=best,
                window_start=w_start,
                window_end=w_end,
                reason="quote not found in cited range or context window",
            ),
        )

    @staticmethod
    def _exact(quote: str, text: str, start: int, end: int) -> Optional[Tuple[int, int]]:
        segment, offsets = normalize(text[start:end])
        idx = segment.find(quote)
        if idx < 0:
            return None
        return start + offsets[idx], start + offsets[idx + len(quote) - 1] + 1

    def _fuzzy(self, quote: str, text: str, start: int, end: int):
        """
        Best equal-length alignment of the quote inside text[start:end].

        Returns:
            (accepted distance or None, span or None, best distance seen or None)
        """
        segment, offsets = normalize(text[start:end])
        if not segment:
            return None
        n = len(quote)
        cap = self.max_edit_distance
        best_d, best_i = None, None
        last = max(len(segment) - n, 0)
        for i in range(last + 1):
            window = segment[i:i + n]
            d = Levenshtein.distance(quote, window, score_cutoff=cap)
            if d <= cap and (best_d is None or d < best_d):
                best_d, best_i = d, i
                if d == 0:
                    break
        if best_d is None:
            return None, None, None
        if self._similarity(quote, best_d) < self.similarity_threshold:
            return None, None, best_d
        stop = min(best_i + n, len(segment)) - 1
        return best_d, (start + offsets[best_i], start + offsets[stop] + 1), best_d

    @staticmethod
    def _similarity(quote: str, distance: int) -> float:
        return max(0.0, 1.0 - distance / len(quote))

    @staticmethod
    def _found(claim_id, match_type, score, distance, w_start, w_end, span) -> CitationVerificationResult:
        return CitationVerificationResult(
            claim_id=claim_id,
            valid=True,
            match_type=match_type,
            score=round(score, 4),
            diagnostics=MatchDiagnostics(
                edit_distance=distance,
                window_start=w_start,
                window_end=w_end,
                match_start=span[0],
                match_end=span[1],
            ),
        )

    @staticmethod
    def _invalid(claim_id: str, reason: str) -> CitationVerificationResult:
        return CitationVerificationResult(
            claim_id=claim_id,
            valid=False,
            match_type=MatchType.NONE,
            score=0.0,
            diagnostics=MatchDiagnostics(reason=reason),
        )


def index_documents(documents: Optional[Dict[str, str]]) -> Dict[str, str]:
    """Document store view keyed by name; non-string payloads are dropped."""
    return {name: text for name, text in (documents or {}).items() if isinstance(text, str)}

"""
Claim Ledger: in-memory, append-only store of the claims produced by one validation run.
"""
import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional

from .errors import ClaimNotFoundError, DuplicateClaimError
from .models.claim import Claim, ClaimType

logger = logging.getLogger(__name__)


class ClaimLedger:
    """
    Per-job claim store with task and type indices.

    Attributes:
        _claims (Dict[str, Claim]): claims keyed by id, in insertion (extraction) order
        _by_task (Dict[str, List[str]]): task id -> claim ids
        _by_type (Dict[ClaimType, List[str]]): claim type -> claim ids
    """

    def __init__(self):
        self._claims: Dict[str, Claim] = {}
        self._by_task: Dict[str, List[str]] = defaultdict(list)
        self._by_type: Dict[ClaimType, List[str]] = defaultdict(list)

    def add(self, claim: Claim) -> str:
        """
        Add a claim.

        Returns:
            The claim id.

        Raises:
            DuplicateClaimError: a claim with the same id is already stored.
        """
        if claim.id in self._claims:
            raise DuplicateClaimError(claim.id)
        self._claims[claim.id] = claim
        self._by_task[claim.task_id].append(claim.id)
        self._by_type[claim.type].append(claim.id)
        return claim.id

    def get(self, claim_id: str) -> Optional[Claim]:
        return self._claims.get(claim_id)

    def get_by_task(self, task_id: str) -> List[Claim]:
        return [self._claims[cid] for cid in self._by_task.get(task_id, [])]

    def get_by_type(self, claim_type: ClaimType) -> List[Claim]:
        return [self._claims[cid] for cid in self._by_type.get(ClaimType(claim_type), [])]

    def all(self) -> List[Claim]:
        return list(self._claims.values())

    def annotate(self, claim_id: str, **metadata: Any) -> Claim:
        """
        Record adjustments on a claim.

        The stored claim is replaced by a copy carrying the merged metadata; `value`
        and `origin` are untouched and the claim keeps its position.
        """
        claim = self._claims.get(claim_id)
        if claim is None:
            raise ClaimNotFoundError(claim_id)
        updated = claim.annotated(**metadata)
        self._claims[claim_id] = updated
        logger.debug(f"Annotated claim {claim_id}: {sorted(metadata)}")
        return updated

    def task_ids(self) -> List[str]:
        return [tid for tid, ids in self._by_task.items() if ids]

    def __len__(self) -> int:
        return len(self._claims)

    def __contains__(self, claim_id: str) -> bool:
        return claim_id in self._claims

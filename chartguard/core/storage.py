"""
Storage Manager: file-based archive of finished validation runs.
"""
import json
import re
import uuid
from datetime import datetime
from pathlib import Path
from typing import Any, Iterable, Optional, Union

from .models.claim import Claim
from .models.report import AuditTrail, ValidatedSchedule


class StorageManager:
    def __init__(self, base_dir: Union[Path, str]):
        self.base_dir = Path(base_dir)

    def start_run(self, title: Optional[str], job_id: Optional[str] = None) -> Path:
        """Create a run directory and return its path."""
        timestamp = datetime.now().strftime("%Y-%m-%d_%H-%M-%S")
        short_id = (job_id or uuid.uuid4().hex)[:6]
        run_dir = self.base_dir / f"{timestamp}_{self._slugify(title or 'schedule')}_{short_id}"
        run_dir.mkdir(parents=True, exist_ok=False)
        return run_dir

    def save_meta(
        self,
        run_dir: Path,
        *,
        job_id: str,
        title: Optional[str],
        start_time: datetime,
        end_time: datetime,
        config: dict[str, Any],
        stats: dict[str, Any],
        version: str,
    ) -> None:
        meta = {
            "run_id": run_dir.name,
            "job_id": job_id,
            "version": version,
            "title": title,
            "start_time": start_time.isoformat(),
            "end_time": end_time.isoformat(),
            "config": config,
            "stats": stats,
        }
        with (run_dir / "meta.json").open("w", encoding="utf-8") as f:
            json.dump(meta, f, ensure_ascii=False, indent=2, default=str)

    def save_validated_schedule(self, run_dir: Path, validated: ValidatedSchedule) -> None:
        (run_dir / "validated_schedule.json").write_text(validated.to_json(), encoding="utf-8")

    def save_audit_trail(self, run_dir: Path, trail: AuditTrail) -> None:
        with (run_dir / "audit_trail.json").open("w", encoding="utf-8") as f:
            json.dump(trail.model_dump(mode="json"), f, ensure_ascii=False, indent=2)

    def save_claims(self, run_dir: Path, claims: Iterable[Claim]) -> None:
        with (run_dir / "claims.jsonl").open("w", encoding="utf-8") as f:
            for claim in claims:
                f.write(json.dumps(claim.model_dump(mode="json"), ensure_ascii=False) + "\n")

    @staticmethod
    def _slugify(title: str) -> str:
        s = re.sub(r"[^a-z0-9_-]+", "-", title.strip().lower()).strip("-")
        return s[:40] or "schedule"

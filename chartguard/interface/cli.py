import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Dict, List, Optional

from ..config.settings import ValidationSettings, settings
from ..core.errors import ChartGuardError
from ..core.models.report import JobResult
from ..core.models.results import QualityGateResult
from ..core.storage import StorageManager
from ..graph.context import PipelineContext
from ..graph.workflow import run_validation

logger = logging.getLogger(__name__)

DOCUMENT_SUFFIXES = {".txt", ".md", ".text"}


def setup_logging(level: str, log_file: Optional[str] = None) -> None:
    handlers: List[logging.Handler] = [logging.StreamHandler(sys.stderr)]
    if log_file:
        handlers.append(logging.FileHandler(log_file, encoding="utf-8"))
    logging.basicConfig(level=level, format=settings.LOG_FORMAT, handlers=handlers, force=True)


def load_documents(docs_dir: Optional[str]) -> Dict[str, str]:
    """Read every text document in a directory, keyed by file name."""
    if not docs_dir:
        return {}
    root = Path(docs_dir)
    if not root.is_dir():
        raise ChartGuardError(f"Document directory not found: {root}")
    documents = {}
    for path in sorted(root.iterdir()):
        if path.is_file() and path.suffix.lower() in DOCUMENT_SUFFIXES:
            documents[path.name] = path.read_text(encoding="utf-8")
    logger.info(f"Loaded {len(documents)} document(s) from {root}")
    return documents


def load_schedule(path: str):
    try:
        with open(path, "r", encoding="utf-8") as f:
            return json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ChartGuardError(f"Cannot read schedule {path}: {e}") from e


def _render_gates(results: List[QualityGateResult]) -> str:
    lines = []
    for r in results:
        mark = "PASS" if r.passed else ("FAIL" if r.blocker else "WARN")
        line = f"  [{mark}] {r.name:<24} score={r.score:.3f} threshold={r.threshold:.3f}"
        if r.error:
            line += f" ({r.error})"
        lines.append(line)
    return "\n".join(lines)


async def run_job(
    schedule_path: str,
    docs_dir: Optional[str],
    config: ValidationSettings,
    out_dir: Optional[str] = None,
    facts_only: bool = False,
) -> int:
    payload = load_schedule(schedule_path)
    documents = load_documents(docs_dir)

    def on_progress(progress: int, step: str) -> None:
        print(f"[{progress:3d}%] {step}")

    context = PipelineContext(
        config=config,
        on_progress=on_progress,
        storage=StorageManager(out_dir) if out_dir else None,
    )

    try:
        result: JobResult = await run_validation(payload, documents, context)
    except ChartGuardError as e:
        print(f"\nValidation failed: {e}")
        return 1

    final_round = result.audit_trail.gate_results[-1].results if result.audit_trail.gate_results else []
    print("\nQuality gates:")
    print(_render_gates(final_round))

    summary = result.validated_schedule.summary
    print(
        f"\n{len(result.validated_schedule.tasks)} task(s), {summary.claim_count} claim(s), "
        f"citation coverage {summary.citation_coverage:.0%}, mean confidence {summary.mean_confidence:.2f}"
    )
    if result.audit_trail.repair_log:
        print(f"{len(result.audit_trail.repair_log)} repair(s) applied")

    validated = result.validated_schedule.facts_only() if facts_only else result.validated_schedule
    if context.run_dir is not None:
        if facts_only:
            (context.run_dir / "facts_only.json").write_text(validated.to_json(), encoding="utf-8")
        print(f"Results written to {context.run_dir}")
    else:
        print(validated.to_json())
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        prog="chartguard",
        description="Verify an AI-drafted project schedule against its source documents",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  chartguard validate draft.json --docs ./documents
  chartguard validate draft.json --docs ./documents --out ./runs --facts-only
        """,
    )
    parser.add_argument("--log-level", default=settings.LOG_LEVEL, help="Logging level (default from CHARTGUARD_LOG_LEVEL)")
    parser.add_argument("--log-file", default=None, help="Also write logs to this file")
    subparsers = parser.add_subparsers(dest="command", required=True)

    validate = subparsers.add_parser("validate", help="Run one validation job")
    validate.add_argument("schedule", help="Draft schedule JSON file")
    validate.add_argument("--docs", default=None, help="Directory of source documents (file name = document name)")
    validate.add_argument("--config", default=None, help="Validation settings YAML file")
    validate.add_argument("--out", default=None, help="Archive results under this directory")
    validate.add_argument("--facts-only", action="store_true", help="Keep only verified explicit fields")

    args = parser.parse_args(argv)
    setup_logging(args.log_level.upper(), args.log_file)

    try:
        config = settings.load_validation_settings(args.config)
        return asyncio.run(run_job(args.schedule, args.docs, config, args.out, args.facts_only))
    except ChartGuardError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())

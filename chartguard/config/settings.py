"""
Configuration management.

Process-level options come from the environment (.env honoured via python-dotenv);
validation options come from a YAML file and may be overridden per job.
"""
import os
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator, model_validator

from ..core.errors import ConfigurationError
from ..core.models.results import Severity

load_dotenv()

DEFAULT_VALIDATION_CONFIG = Path(__file__).parent / "validation.yaml"

DEFAULT_PROVIDER_TRUST = {
    "INTERNAL": 1.0,
    "DETERMINISTIC": 1.0,
    "USER": 0.9,
    "GEMINI": 0.7,
    "OPENAI": 0.7,
    "ANTHROPIC": 0.7,
}

DEFAULT_GATE_THRESHOLDS = {
    "CITATION_COVERAGE": 0.75,
    "CONTRADICTION_SEVERITY": 0.0,
    "CONFIDENCE_MINIMUM": 0.5,
    "SCHEMA_COMPLIANCE": 1.0,
    "REGULATORY_FLAGS": 1.0,
}


class CalibrationWeights(BaseModel):
    model_config = ConfigDict(extra="forbid")

    citation: float = Field(0.30, ge=0.0, le=1.0)
    contradiction: float = Field(0.25, ge=0.0, le=1.0)
    provenance: float = Field(0.25, ge=0.0, le=1.0)
    origin: float = Field(0.20, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _sums_to_one(self):
        total = self.citation + self.contradiction + self.provenance + self.origin
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"calibration weights must sum to 1.0, got {total:.3f}")
        return self


class ProvenanceWeights(BaseModel):
    model_config = ConfigDict(extra="forbid")

    source: float = Field(0.30, ge=0.0, le=1.0)
    provider: float = Field(0.25, ge=0.0, le=1.0)
    timestamp: float = Field(0.20, ge=0.0, le=1.0)
    tampering: float = Field(0.25, ge=0.0, le=1.0)

    @model_validator(mode="after")
    def _sums_to_one(self):
        total = self.source + self.provider + self.timestamp + self.tampering
        if abs(total - 1.0) > 1e-6:
            raise ValueError(f"provenance weights must sum to 1.0, got {total:.3f}")
        return self


class ValidationSettings(BaseModel):
    """Every tunable of one validation run. Immutable once a job starts."""
    model_config = ConfigDict(extra="forbid", frozen=True)

    # Citation verifier
    citation_similarity_threshold: float = Field(0.85, ge=0.0, le=1.0)
    citation_max_edit_distance: int = Field(5, ge=0)
    context_window: int = Field(200, ge=0, description="Characters searched either side of the cited range")

    # Contradiction detector
    numerical_tolerance: float = Field(10.0, ge=0.0, description="Percent")
    temporal_tolerance_days: float = Field(7.0, ge=0.0)
    temporal_high_multiple: float = Field(4.0, ge=1.0)
    temporal_medium_multiple: float = Field(2.0, ge=1.0)
    logical_severity: Severity = Severity.MEDIUM

    # Provenance auditor
    provider_trust: Dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_PROVIDER_TRUST))
    unknown_provider_trust: float = Field(0.5, ge=0.0, le=1.0)
    provenance_weights: ProvenanceWeights = Field(default_factory=ProvenanceWeights)
    max_document_age_days: int = Field(365, ge=0)
    reference_time: Optional[datetime] = Field(None, description="Fixed 'now' for timestamp checks")

    # Confidence calibrator
    calibration_weights: CalibrationWeights = Field(default_factory=CalibrationWeights)
    calibration_blend: float = Field(0.7, ge=0.0, le=1.0, description="Share of the calibrated score; the prior gets the rest")
    citation_factor_min: float = Field(0.90, ge=0.0, le=1.0)
    citation_factor_max: float = Field(0.95, ge=0.0, le=1.0)
    citation_factor_invalid: float = Field(0.3, ge=0.0, le=1.0)
    origin_explicit: float = Field(0.95, ge=0.0, le=1.0)
    origin_explicit_unverified: float = Field(0.7, ge=0.0, le=1.0)
    origin_inferred: float = Field(0.6, ge=0.0, le=1.0)
    severity_penalties: Dict[Severity, float] = Field(
        default_factory=lambda: {Severity.HIGH: 0.3, Severity.MEDIUM: 0.15, Severity.LOW: 0.05}
    )
    task_coverage_penalty: float = Field(0.1, ge=0.0, le=1.0)
    task_provenance_floor: float = Field(0.7, ge=0.0, le=1.0)
    task_provenance_penalty: float = Field(0.1, ge=0.0, le=1.0)

    # Quality gates & repair
    gate_thresholds: Dict[str, float] = Field(default_factory=lambda: dict(DEFAULT_GATE_THRESHOLDS))
    max_repair_attempts: int = Field(3, ge=0)
    repair_confidence_boost: float = Field(0.1, ge=0.0, le=1.0)
    repair_warnings: bool = True

    # Execution
    max_workers: int = Field(4, ge=1)
    job_ttl_seconds: int = Field(3600, ge=0)

    @field_validator("provider_trust")
    @classmethod
    def _trust_in_range(cls, v):
        for name, weight in v.items():
            if not 0.0 <= weight <= 1.0:
                raise ValueError(f"trust weight for {name} must be within [0, 1], got {weight}")
        return {name.upper(): weight for name, weight in v.items()}

    @model_validator(mode="after")
    def _citation_range(self):
        if self.citation_factor_min > self.citation_factor_max:
            raise ValueError("citation_factor_min must not exceed citation_factor_max")
        if self.temporal_medium_multiple > self.temporal_high_multiple:
            raise ValueError("temporal_medium_multiple must not exceed temporal_high_multiple")
        return self

    def threshold(self, gate_name: str, default: float) -> float:
        return self.gate_thresholds.get(gate_name, default)

    def trust_for(self, producer: Optional[str]) -> Optional[float]:
        """Configured trust weight, or None for unknown producers."""
        if not producer:
            return None
        return self.provider_trust.get(producer.upper())

    def with_overrides(self, overrides: Optional[Dict[str, Any]]) -> "ValidationSettings":
        """
        Merge per-job overrides over these settings.

        Mapping options (weights, trust map, gate thresholds) are merged key by key.

        Raises:
            ConfigurationError: unknown option or invalid value.
        """
        if not overrides:
            return self
        if not isinstance(overrides, dict):
            raise ConfigurationError(f"Config overrides must be a mapping, got {type(overrides).__name__}")
        merged = self.model_dump(mode="json")
        for key, value in overrides.items():
            if isinstance(value, dict) and isinstance(merged.get(key), dict):
                merged[key] = {**merged[key], **value}
            else:
                merged[key] = value
        return _build(merged)

    @classmethod
    def from_yaml(cls, path) -> "ValidationSettings":
        path = Path(path)
        try:
            with open(path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            raise ConfigurationError(f"Cannot read validation config {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationError(f"Validation config {path} must contain a mapping")
        return _build(data)


def _build(data: Dict[str, Any]) -> ValidationSettings:
    try:
        return ValidationSettings(**data)
    except ValidationError as e:
        problems = "; ".join(
            f"{'.'.join(str(p) for p in err['loc']) or 'config'}: {err['msg']}" for err in e.errors()
        )
        raise ConfigurationError(f"Invalid validation settings: {problems}") from e


class Settings:
    """Global settings"""

    project_name = "chartguard"
    debug = os.getenv("DEBUG", "False").lower() == "true"

    LOG_LEVEL = os.getenv("CHARTGUARD_LOG_LEVEL", "INFO").upper()
    LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    # Optional run archive; nothing is written when unset
    RUNS_DIR = os.getenv("CHARTGUARD_RUNS_DIR", "")

    VALIDATION_CONFIG = os.getenv("CHARTGUARD_VALIDATION_CONFIG", "")
    _max_repair_attempts = os.getenv("CHARTGUARD_MAX_REPAIR_ATTEMPTS", "")

    # LangGraph recursion guard; the repair loop adds two nodes per attempt
    GRAPH_BASE_RECURSION = 20

    def load_validation_settings(self, path: Optional[str] = None) -> ValidationSettings:
        """Load the YAML defaults (or the configured file) and apply environment overrides."""
        config_path = path or self.VALIDATION_CONFIG or DEFAULT_VALIDATION_CONFIG
        base = ValidationSettings.from_yaml(config_path)
        if self._max_repair_attempts:
            try:
                attempts = int(self._max_repair_attempts)
            except ValueError as e:
                raise ConfigurationError(
                    f"CHARTGUARD_MAX_REPAIR_ATTEMPTS must be an integer, got {self._max_repair_attempts!r}"
                ) from e
            base = base.with_overrides({"max_repair_attempts": attempts})
        return base

    def recursion_limit(self, validation: ValidationSettings) -> int:
        return self.GRAPH_BASE_RECURSION + 2 * validation.max_repair_attempts


settings = Settings()

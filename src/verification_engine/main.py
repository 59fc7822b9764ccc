"""
Configuration and Types for the Verification Engine

Shared data model for requests, module output, aggregated results and
the configuration objects that carry every scoring constant.
"""

import copy
import dataclasses
import os
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional


class Domain(Enum):
    """Content domains with a dedicated rule-evaluation module"""
    LEGAL = "legal"
    FINANCIAL = "financial"
    HEALTHCARE = "healthcare"
    INSURANCE = "insurance"


class Urgency(Enum):
    """Caller-declared urgency of a verification request"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class Severity(Enum):
    """Severity of a single finding"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _RANKS[self.value]


class RiskLevel(Enum):
    """Coarse-grained verdict for a verification"""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"

    @property
    def rank(self) -> int:
        return _RANKS[self.value]


_RANKS = {"low": 1, "medium": 2, "high": 3, "critical": 4}


class IssueType(Enum):
    """Kinds of findings a module can report"""
    FACTUAL_ERROR = "factual_error"
    LOGICAL_INCONSISTENCY = "logical_inconsistency"
    COMPLIANCE_VIOLATION = "compliance_violation"
    FORMATTING_ISSUE = "formatting_issue"
    OTHER = "other"


class VerificationState(Enum):
    """Verification lifecycle status"""
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"


TERMINAL_STATES = {
    VerificationState.COMPLETED,
    VerificationState.FAILED,
    VerificationState.CANCELLED,
}


# =========================================================================
# Request Types
# =========================================================================

@dataclass(frozen=True)
class ParsedContent:
    """Plain text extracted from a document by the parsing layer"""
    id: str
    extracted_text: str
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass(frozen=True)
class VerificationOptions:
    """Per-request tuning"""
    confidence_threshold: Optional[float] = None  # 0-100
    max_processing_time_ms: Optional[int] = None

    def normalized(self) -> Dict[str, Any]:
        """Options reduced to the values that influence the result"""
        data: Dict[str, Any] = {}
        if self.confidence_threshold is not None:
            data["confidence_threshold"] = float(self.confidence_threshold)
        if self.max_processing_time_ms is not None:
            data["max_processing_time_ms"] = int(self.max_processing_time_ms)
        return data


@dataclass(frozen=True)
class VerificationRequest:
    """
    A request to verify one piece of content.

    Immutable once submitted. Structural checks (content, domain and
    urgency present) are performed by the engine, not here, so that a
    malformed request still produces an audit entry.
    """
    content: Optional[ParsedContent]
    domain: Optional[Domain]
    urgency: Optional[Urgency] = Urgency.MEDIUM
    options: VerificationOptions = field(default_factory=VerificationOptions)
    user_id: Optional[str] = None
    organization_id: Optional[str] = None


# =========================================================================
# Findings and Results
# =========================================================================

@dataclass
class TextLocation:
    """Character span inside the extracted text"""
    start: int
    end: int
    text: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"start": self.start, "end": self.end, "text": self.text}


@dataclass
class Issue:
    """A located, severity-tagged finding"""
    id: str
    type: IssueType
    severity: Severity
    location: TextLocation
    description: str
    evidence: List[str] = field(default_factory=list)
    confidence: float = 0.0
    module_source: str = ""

    def with_source(self, module_source: str) -> "Issue":
        """Copy of this issue tagged with the module that produced it"""
        return dataclasses.replace(self, module_source=module_source)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type.value,
            "severity": self.severity.value,
            "location": self.location.to_dict(),
            "description": self.description,
            "evidence": list(self.evidence),
            "confidence": self.confidence,
            "module_source": self.module_source,
        }


@dataclass
class ValidationResult:
    """Output of one domain module invocation"""
    module_id: str
    issues: List[Issue] = field(default_factory=list)
    confidence: float = 0.0
    processing_time_ms: int = 0
    metadata: Dict[str, Any] = field(default_factory=dict)


@dataclass
class VerificationResult:
    """
    Aggregated verdict for one verification.

    Cached copies are re-stamped with a new verification id and
    timestamp on reuse but share the issue/score payload.
    """
    verification_id: str
    overall_confidence: int
    risk_level: RiskLevel
    issues: List[Issue] = field(default_factory=list)
    audit_trail: List[Any] = field(default_factory=list)
    processing_time_ms: int = 0
    recommendations: List[str] = field(default_factory=list)
    timestamp: datetime = field(default_factory=datetime.now)

    def restamp(self, verification_id: str) -> "VerificationResult":
        """Independent copy carrying a new identity and timestamp"""
        return dataclasses.replace(
            self,
            verification_id=verification_id,
            timestamp=datetime.now(),
            issues=copy.deepcopy(self.issues),
            audit_trail=[],
            recommendations=list(self.recommendations),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "verification_id": self.verification_id,
            "overall_confidence": self.overall_confidence,
            "risk_level": self.risk_level.value,
            "issues": [i.to_dict() for i in self.issues],
            "audit_trail": [e.to_dict() for e in self.audit_trail],
            "processing_time_ms": self.processing_time_ms,
            "recommendations": list(self.recommendations),
            "timestamp": self.timestamp.isoformat(),
        }


@dataclass
class VerificationStatus:
    """Live status of an in-flight verification"""
    verification_id: str
    status: VerificationState = VerificationState.PROCESSING
    progress: float = 0.0
    current_step: str = ""
    error: Optional[str] = None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATES

    def to_dict(self) -> Dict[str, Any]:
        return {
            "verification_id": self.verification_id,
            "status": self.status.value,
            "progress": self.progress,
            "current_step": self.current_step,
            "error": self.error,
        }


def new_id() -> str:
    return str(uuid.uuid4())


# =========================================================================
# Configuration
# =========================================================================

DEFAULT_CONFIDENCE_WEIGHTS = {
    Domain.FINANCIAL: 1.2,
    Domain.HEALTHCARE: 1.1,
    Domain.LEGAL: 1.0,
    Domain.INSURANCE: 1.0,
}


@dataclass
class ScoringPolicy:
    """Confidence weighting and risk classification constants"""
    confidence_weights: Dict[Domain, float] = field(
        default_factory=lambda: dict(DEFAULT_CONFIDENCE_WEIGHTS)
    )
    default_weight: float = 1.0
    default_confidence: int = 100  # when no module reports a positive confidence

    # Risk tier boundaries (confidence strictly below the value escalates)
    critical_below: float = 50
    high_below: float = 70
    medium_below: float = 85
    clean_low_at: float = 90  # no issues and confidence >= this -> low

    def weight_for(self, domain: Optional[Domain]) -> float:
        return self.confidence_weights.get(domain, self.default_weight)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ScoringPolicy":
        data = dict(data)
        weights = data.pop("confidence_weights", None)
        policy = cls(**data)
        if weights:
            policy.confidence_weights = {
                Domain(k): float(v) for k, v in weights.items()
            }
        return policy


@dataclass
class ProcessorConfig:
    """Configuration for the results processor"""
    enable_caching: bool = True
    cache_ttl_seconds: int = 3600
    cache_max_size: int = 10000
    enable_persistence: bool = True  # only effective with a result store
    scoring: ScoringPolicy = field(default_factory=ScoringPolicy)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ProcessorConfig":
        data = dict(data)
        scoring = data.pop("scoring", None)
        config = cls(**data)
        if scoring:
            config.scoring = ScoringPolicy.from_dict(scoring)
        return config


@dataclass
class EngineConfig:
    """
    Configuration for the Verification Engine.

    Controls admission, timeouts, caching and audit integration.
    """
    # Identity
    name: str = "verification-engine"
    version: str = "1.0.0"

    # Execution settings
    max_concurrent_verifications: int = 100
    default_timeout_ms: int = 30000  # per module

    # Audit integration
    audit_sink_url: Optional[str] = field(
        default_factory=lambda: os.getenv("AUDIT_SINK_URL")
    )
    audit_timeout_ms: int = 5000

    log_level: str = "INFO"

    processor: ProcessorConfig = field(default_factory=ProcessorConfig)

    @classmethod
    def from_yaml(cls, path: str) -> "EngineConfig":
        """Load config from YAML file"""
        import yaml

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        processor = data.pop("processor", None)
        config = cls(**data)
        if processor:
            config.processor = ProcessorConfig.from_dict(processor)
        return config

    @classmethod
    def from_env(cls) -> "EngineConfig":
        """Load config from environment variables"""
        return cls(
            max_concurrent_verifications=int(os.getenv("VERIFY_MAX_CONCURRENT", "100")),
            default_timeout_ms=int(os.getenv("VERIFY_TIMEOUT_MS", "30000")),
            audit_sink_url=os.getenv("AUDIT_SINK_URL"),
            log_level=os.getenv("LOG_LEVEL", "INFO"),
            processor=ProcessorConfig(
                enable_caching=os.getenv("VERIFY_CACHE_ENABLED", "true").lower() == "true",
                cache_ttl_seconds=int(os.getenv("VERIFY_CACHE_TTL", "3600")),
            ),
        )

"""
Content Verification Engine

Verifies textual content against domain-specific compliance rules
(legal, financial, healthcare, insurance) and produces one risk-scored
verdict per request, with an audit trail of every step.
"""

__version__ = "1.0.0"

from .audit import (
    AuditEntry,
    AuditSink,
    AuditSinkError,
    AuditTrail,
    HttpAuditSink,
    InMemoryAuditSink,
)
from .engine import (
    AggregationError,
    InvalidRequestError,
    ModuleExecutionError,
    ModuleTimeoutError,
    ResourceExhaustedError,
    VerificationCancelledError,
    VerificationEngine,
    VerificationError,
    VerificationErrorKind,
    VerificationNotFoundError,
    create_engine,
)
from .main import (
    Domain,
    EngineConfig,
    Issue,
    IssueType,
    ParsedContent,
    ProcessorConfig,
    RiskLevel,
    ScoringPolicy,
    Severity,
    TextLocation,
    Urgency,
    ValidationResult,
    VerificationOptions,
    VerificationRequest,
    VerificationResult,
    VerificationState,
    VerificationStatus,
)
from .metrics import ResultsMetrics
from .modules import DomainModule, MockModule, ModuleConfig
from .results import (
    InMemoryResultStore,
    ResultsCache,
    ResultsProcessor,
    ResultStore,
    classify_risk,
)

__all__ = [
    # Engine
    "VerificationEngine",
    "create_engine",
    # Errors
    "VerificationError",
    "VerificationErrorKind",
    "InvalidRequestError",
    "ResourceExhaustedError",
    "VerificationNotFoundError",
    "ModuleTimeoutError",
    "ModuleExecutionError",
    "AggregationError",
    "VerificationCancelledError",
    # Types
    "Domain",
    "Urgency",
    "Severity",
    "RiskLevel",
    "IssueType",
    "VerificationState",
    "ParsedContent",
    "VerificationOptions",
    "VerificationRequest",
    "TextLocation",
    "Issue",
    "ValidationResult",
    "VerificationResult",
    "VerificationStatus",
    # Config
    "EngineConfig",
    "ProcessorConfig",
    "ScoringPolicy",
    # Results
    "ResultsProcessor",
    "ResultsCache",
    "ResultStore",
    "InMemoryResultStore",
    "ResultsMetrics",
    "classify_risk",
    # Modules
    "DomainModule",
    "ModuleConfig",
    "MockModule",
    # Audit
    "AuditEntry",
    "AuditTrail",
    "AuditSink",
    "AuditSinkError",
    "InMemoryAuditSink",
    "HttpAuditSink",
    # Meta
    "__version__",
]

"""
Audit Trail

Per-verification, append-only record of every pipeline step, plus the
sinks the engine hands finished trails to.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Iterator, List, Optional

import httpx

from .main import new_id

logger = logging.getLogger(__name__)


class AuditAction:
    """Action names recorded by the engine"""
    VERIFICATION_STARTED = "verification_started"
    VERIFICATION_COMPLETED = "verification_completed"
    VERIFICATION_FAILED = "verification_failed"
    VERIFICATION_CANCELLED = "verification_cancelled"
    MODULE_STARTED = "module_started"
    MODULE_COMPLETED = "module_completed"
    MODULE_FAILED = "module_failed"


class AuditSinkError(Exception):
    """An audit entry could not be delivered"""
    pass


@dataclass
class AuditEntry:
    """A single audited step"""
    id: str
    session_id: str
    action: str
    component: str
    details: Dict[str, Any] = field(default_factory=dict)
    user_id: Optional[str] = None
    timestamp: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "timestamp": self.timestamp.isoformat(),
            "action": self.action,
            "component": self.component,
            "details": self.details,
            "user_id": self.user_id,
        }


class AuditTrail:
    """Ordered audit entries for one verification"""

    def __init__(self, session_id: str, user_id: Optional[str] = None):
        self.session_id = session_id
        self.user_id = user_id
        self._entries: List[AuditEntry] = []

    def record(
        self,
        action: str,
        component: str,
        details: Optional[Dict[str, Any]] = None,
    ) -> AuditEntry:
        entry = AuditEntry(
            id=new_id(),
            session_id=self.session_id,
            action=action,
            component=component,
            details=details or {},
            user_id=self.user_id,
        )
        self._entries.append(entry)
        logger.debug(f"[{self.session_id}] audit {action} ({component})")
        return entry

    @property
    def entries(self) -> List[AuditEntry]:
        """Live list of entries (shared, not copied)"""
        return self._entries

    def actions(self) -> List[str]:
        return [e.action for e in self._entries]

    def __iter__(self) -> Iterator[AuditEntry]:
        return iter(list(self._entries))

    def __len__(self) -> int:
        return len(self._entries)


class AuditSink(ABC):
    """External destination for audit entries"""

    @abstractmethod
    async def create_entry(self, entry: AuditEntry) -> None:
        """Persist one entry. Raise AuditSinkError on failure."""
        pass


class InMemoryAuditSink(AuditSink):
    """Keeps entries in process; used for local runs and tests"""

    def __init__(self):
        self.entries: List[AuditEntry] = []

    async def create_entry(self, entry: AuditEntry) -> None:
        self.entries.append(entry)

    def for_session(self, session_id: str) -> List[AuditEntry]:
        return [e for e in self.entries if e.session_id == session_id]


class HttpAuditSink(AuditSink):
    """Posts entries to an audit service over HTTP"""

    def __init__(
        self,
        base_url: str,
        timeout_ms: int = 5000,
        service: str = "verification-engine",
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_ms = timeout_ms
        self.service = service
        self._transport = transport

    async def create_entry(self, entry: AuditEntry) -> None:
        payload = {"service": self.service, **entry.to_dict()}

        try:
            async with httpx.AsyncClient(
                timeout=self.timeout_ms / 1000,
                transport=self._transport,
            ) as client:
                response = await client.post(
                    f"{self.base_url}/audit/entries",
                    json=payload,
                )
        except httpx.HTTPError as e:
            raise AuditSinkError(f"Audit sink unreachable: {e}") from e

        if response.status_code >= 400:
            raise AuditSinkError(
                f"Audit sink rejected entry {entry.id}: HTTP {response.status_code}"
            )
        logger.debug(f"[{entry.session_id}] audit entry delivered: {entry.action}")

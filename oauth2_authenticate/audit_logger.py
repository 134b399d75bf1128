"""
Audit logging for the OAuth2 authentication flow.

Every redirect, completed exchange and rejected attempt is recorded as an
AuditEvent, kept in a bounded in-memory buffer and written to the ``audit``
logger.
"""

import logging
import time
import threading
from typing import Dict, Any, List, Optional
from datetime import datetime, timezone
from dataclasses import dataclass, asdict
from enum import Enum


MAX_GLOBAL_EVENTS = 10000


class AuditEventType(Enum):
    """Types of audit events that can be logged."""
    OAUTH_INITIATED = "oauth_initiated"
    OAUTH_COMPLETED = "oauth_completed"
    OAUTH_FAILED = "oauth_failed"
    STATE_REJECTED = "state_rejected"
    PROVIDER_NOT_FOUND = "provider_not_found"
    USER_IDENTIFIED = "user_identified"


@dataclass
class AuditEvent:
    """Represents a single audit event."""
    event_id: str
    event_type: AuditEventType
    timestamp: str
    provider: Optional[str]
    grant_type: Optional[str]
    success: bool
    details: Dict[str, Any]

    def to_dict(self) -> Dict[str, Any]:
        """Convert audit event to dictionary."""
        result = asdict(self)
        result['event_type'] = self.event_type.value
        return result


class AuditLogger:
    """In-memory audit trail of authentication attempts."""

    def __init__(self, max_events: int = MAX_GLOBAL_EVENTS):
        """Initialize the audit logger."""
        self.logger = logging.getLogger(f"{__name__}.AuditLogger")
        self.global_events: List[AuditEvent] = []
        self.storage_lock = threading.Lock()
        self.event_counter = 0
        self.max_events = max_events

        self._setup_audit_logging()

    def _setup_audit_logging(self):
        """Set up dedicated audit logging configuration."""
        audit_logger = logging.getLogger('audit')
        audit_logger.setLevel(logging.INFO)

        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            '%(asctime)s - AUDIT - %(levelname)s - %(message)s'
        )
        handler.setFormatter(formatter)

        if not audit_logger.handlers:
            audit_logger.addHandler(handler)

        self.audit_logger = audit_logger

    def _generate_event_id(self) -> str:
        """Generate a unique event ID."""
        with self.storage_lock:
            self.event_counter += 1
            return f"audit_{int(time.time())}_{self.event_counter}"

    def log_event(self, event_type: AuditEventType, provider: Optional[str] = None,
                  grant_type: Optional[str] = None, success: bool = True,
                  details: Optional[Dict[str, Any]] = None) -> str:
        """
        Log an audit event.

        Args:
            event_type: Type of audit event
            provider: Optional provider alias
            grant_type: Optional OAuth2 grant type
            success: Whether the operation was successful
            details: Optional additional event details

        Returns:
            Generated event ID
        """
        event_id = self._generate_event_id()
        timestamp = datetime.now(timezone.utc).isoformat().replace('+00:00', 'Z')

        event = AuditEvent(
            event_id=event_id,
            event_type=event_type,
            timestamp=timestamp,
            provider=provider,
            grant_type=grant_type,
            success=success,
            details=details or {}
        )

        with self.storage_lock:
            self.global_events.append(event)
            if len(self.global_events) > self.max_events:
                self.global_events = self.global_events[-self.max_events:]

        self.audit_logger.info(
            f"Event: {event_type.value} | Provider: {provider} | "
            f"Grant: {grant_type} | Success: {success}"
        )

        return event_id

    def get_provider_audit_log(self, provider: str, limit: int = 100) -> List[Dict[str, Any]]:
        """
        Get audit log for a specific provider, most recent first.

        Args:
            provider: Provider alias
            limit: Maximum number of events to return

        Returns:
            List of audit events for the provider
        """
        provider_events = []

        with self.storage_lock:
            for event in reversed(self.global_events):
                if event.provider == provider:
                    provider_events.append(event.to_dict())
                    if len(provider_events) >= limit:
                        break

        return provider_events

    def get_audit_statistics(self) -> Dict[str, Any]:
        """
        Get audit statistics for reporting.

        Returns:
            Dictionary with audit statistics
        """
        with self.storage_lock:
            total_events = len(self.global_events)
            event_types = {}
            providers = {}
            success_count = 0

            for event in self.global_events:
                event_type = event.event_type.value
                event_types[event_type] = event_types.get(event_type, 0) + 1

                if event.provider:
                    providers[event.provider] = providers.get(event.provider, 0) + 1

                if event.success:
                    success_count += 1

        success_rate = (success_count / total_events * 100) if total_events > 0 else 0

        return {
            'total_events': total_events,
            'success_rate_percent': round(success_rate, 2),
            'event_types': event_types,
            'providers': providers,
        }

    def clear(self) -> int:
        """Drop every stored event. Returns the number removed."""
        with self.storage_lock:
            count = len(self.global_events)
            self.global_events = []
        return count


# Global audit logger instance
audit_logger = AuditLogger()


def get_audit_logger() -> AuditLogger:
    """Get the global audit logger instance."""
    return audit_logger

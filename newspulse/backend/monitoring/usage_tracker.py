#!/usr/bin/env python3
"""
Gemini API Usage Tracker

Counts remote AI calls (speech, translation, enhancement) against the
shared-cache hits that avoided them, so a session can report how much
network and model cost the caches saved.
"""

import logging
from typing import Dict, List, Optional
from datetime import datetime, timezone
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)

QUOTA_MARKERS = ("429", "resource_exhausted", "quota")


@dataclass
class APICall:
    """A single remote AI call."""
    timestamp: str
    model: str
    operation: str
    processing_time: float
    success: bool
    error_message: Optional[str] = None


@dataclass
class UsageSummary:
    """Summary of AI usage during a session."""
    session_start: str
    total_calls: int
    successful_calls: int
    failed_calls: int
    quota_errors: int
    cache_hits: int
    calls_by_operation: Dict[str, int] = field(default_factory=dict)
    cache_hits_by_operation: Dict[str, int] = field(default_factory=dict)
    models_used: Dict[str, int] = field(default_factory=dict)
    average_processing_time: float = 0.0

    @property
    def cache_hit_rate(self) -> float:
        lookups = self.cache_hits + self.total_calls
        return self.cache_hits / lookups if lookups else 0.0


class AIUsageTracker:
    """Tracks Gemini calls and cache hits for one process."""

    def __init__(self):
        self.calls: List[APICall] = []
        self.cache_hits: Dict[str, int] = {}
        self.session_start = datetime.now(timezone.utc)

    def record_call(self,
                    model: str,
                    operation: str,
                    processing_time: float = 0.0,
                    success: bool = True,
                    error_message: Optional[str] = None) -> None:
        """Record a remote AI call."""
        self.calls.append(APICall(
            timestamp=datetime.now(timezone.utc).isoformat(),
            model=model,
            operation=operation,
            processing_time=processing_time,
            success=success,
            error_message=error_message
        ))
        logger.debug(f"Recorded AI call: {model} ({operation}) - {processing_time:.2f}s - {'ok' if success else 'failed'}")

    def record_cache_hit(self, operation: str) -> None:
        self.cache_hits[operation] = self.cache_hits.get(operation, 0) + 1

    def get_usage_summary(self) -> UsageSummary:
        """Generate a usage summary."""
        successful = [call for call in self.calls if call.success]
        calls_by_operation: Dict[str, int] = {}
        models_used: Dict[str, int] = {}
        for call in self.calls:
            calls_by_operation[call.operation] = calls_by_operation.get(call.operation, 0) + 1
            models_used[call.model] = models_used.get(call.model, 0) + 1

        quota_errors = sum(
            1 for call in self.calls
            if call.error_message and any(marker in call.error_message.lower() for marker in QUOTA_MARKERS)
        )

        return UsageSummary(
            session_start=self.session_start.isoformat(),
            total_calls=len(self.calls),
            successful_calls=len(successful),
            failed_calls=len(self.calls) - len(successful),
            quota_errors=quota_errors,
            cache_hits=sum(self.cache_hits.values()),
            calls_by_operation=calls_by_operation,
            cache_hits_by_operation=dict(self.cache_hits),
            models_used=models_used,
            average_processing_time=(
                sum(call.processing_time for call in successful) / len(successful) if successful else 0.0
            )
        )

    def log_summary(self) -> None:
        summary = self.get_usage_summary()
        if not summary.total_calls and not summary.cache_hits:
            return
        logger.info(
            f"AI usage: {summary.successful_calls}/{summary.total_calls} calls ok, "
            f"{summary.cache_hits} cache hits ({summary.cache_hit_rate:.0%}), "
            f"{summary.quota_errors} quota errors"
        )


# Global instance for easy access
usage_tracker = AIUsageTracker()

"""
Sync prerequisite validation.

Checks that have to pass before any entity worker runs.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from promosync.config.settings import SchedulerSettings, SyncSettings
from promosync.sync.connectors.base import ContentSourceClient

logger = logging.getLogger(__name__)

MIN_SCHEDULER_INTERVAL_SECONDS = 60


@dataclass
class ValidationResult:
    """Outcome of a prerequisite check."""
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    @property
    def valid(self) -> bool:
        return not self.errors

    def to_dict(self) -> Dict[str, Any]:
        return {"valid": self.valid, "errors": list(self.errors), "warnings": list(self.warnings)}


class SyncValidationService:
    """Validates configuration and connectivity prerequisites."""

    def __init__(
        self,
        client: ContentSourceClient,
        sync_settings: SyncSettings,
        scheduler_settings: Optional[SchedulerSettings] = None
    ):
        self.client = client
        self.sync_settings = sync_settings
        self.scheduler_settings = scheduler_settings

    def is_configured(self) -> bool:
        return self.client.is_configured()

    def validate_prerequisites(self) -> ValidationResult:
        """
        Validate that a sync run may start.

        Returns:
            ValidationResult; ``valid`` is False when sync is disabled or the
            content source is missing credentials
        """
        result = ValidationResult()

        if not self.sync_settings.enabled:
            result.errors.append("Sync is disabled (SYNC_ENABLED=false)")

        if not self.client.is_configured():
            result.errors.append("Content source is not configured (NOTION_TOKEN is missing)")

        scheduler = self.scheduler_settings
        if scheduler is not None and scheduler.enabled and scheduler.interval_seconds < MIN_SCHEDULER_INTERVAL_SECONDS:
            result.warnings.append(
                f"Scheduler interval of {scheduler.interval_seconds}s is below "
                f"{MIN_SCHEDULER_INTERVAL_SECONDS}s and may exhaust the content source rate limit"
            )

        for warning in result.warnings:
            logger.warning(warning)
        if not result.valid:
            logger.error(f"Sync prerequisites not met: {'; '.join(result.errors)}")

        return result


__all__ = ["ValidationResult", "SyncValidationService"]

"""
Classification service.

Carries out the decisions of domain.update_policy against the WSUS server:
declines the three decline sets and approves the approvable set, subject to
the approval safety cap. Calls are issued sequentially; a failure on one
record is a warning and never stops the loop.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Sequence

from autowsus.application.ports import CatalogClient
from autowsus.domain.config.settings import UpdatePolicy
from autowsus.domain.errors import CatalogError
from autowsus.domain.models import ClassificationResult, UpdateRecord
from autowsus.domain.outcome import Outcome
from autowsus.domain.update_policy import classify

logger = logging.getLogger(__name__)


@dataclass
class ClassificationCounts:
    """Successful actions per category."""
    declined_expired: int = 0
    declined_superseded: int = 0
    declined_old: int = 0
    approved: int = 0
    approval_candidates: int = 0
    approvals_capped: bool = False


class ClassificationService:
    """Applies the update policy to a catalog snapshot."""

    def __init__(self, catalog: CatalogClient, policy: UpdatePolicy, target_group: str = "All Computers"):
        self.catalog = catalog
        self.policy = policy
        self.target_group = target_group

    def _decline_all(self, records: Sequence[UpdateRecord], category: str, outcome: Outcome) -> int:
        declined = 0
        for record in records:
            try:
                self.catalog.decline(record.id)
                declined += 1
            except CatalogError as exc:
                logger.warning("Decline failed for %s: %s", record.id, exc)
                outcome.warn(f"Decline ({category}) failed for '{record.title}' ({record.id}): {exc}")
        if records:
            logger.info("Declined %d/%d %s updates", declined, len(records), category)
        return declined

    def _approve_all(self, records: Sequence[UpdateRecord], counts: ClassificationCounts, outcome: Outcome) -> None:
        counts.approval_candidates = len(records)
        if len(records) > self.policy.approval_cap:
            sample = [record.title for record in records[:self.policy.approval_sample_size]]
            counts.approvals_capped = True
            message = (
                f"Approval skipped: {len(records)} candidates exceed the safety cap of "
                f"{self.policy.approval_cap}. First {len(sample)}: " + "; ".join(sample)
            )
            logger.warning(message)
            outcome.warn(message)
            return

        for record in records:
            try:
                self.catalog.approve(record.id, self.target_group)
                counts.approved += 1
            except CatalogError as exc:
                logger.warning("Approval failed for %s: %s", record.id, exc)
                outcome.warn(f"Approval failed for '{record.title}' ({record.id}): {exc}")
        if records:
            logger.info("Approved %d/%d updates for %s", counts.approved, len(records), self.target_group)

    def apply(self, result: ClassificationResult) -> Outcome[ClassificationCounts]:
        """Send declines, then approvals, for an already classified snapshot."""
        counts = ClassificationCounts()
        outcome: Outcome[ClassificationCounts] = Outcome.ok(counts)

        counts.declined_expired = self._decline_all(result.expired, "expired", outcome)
        counts.declined_superseded = self._decline_all(result.superseded, "superseded", outcome)
        counts.declined_old = self._decline_all(result.old, "old", outcome)

        if self.policy.auto_approve:
            self._approve_all(result.approvable, counts, outcome)
        return outcome

    def run(self, now: datetime) -> Outcome[ClassificationCounts]:
        """
        Fetch a fresh snapshot, classify it and apply the result.

        A failure to fetch the snapshot fails the phase; individual decline
        and approval failures are warnings.
        """
        try:
            records = self.catalog.get_all_records()
        except CatalogError as exc:
            return Outcome.failed(f"Cannot read catalog entries: {exc}")

        result = classify(records, now, self.policy)
        logger.info(
            "Classified %d entries: %d expired, %d superseded, %d old, %d approvable",
            len(records), len(result.expired), len(result.superseded),
            len(result.old), len(result.approvable),
        )
        return self.apply(result)

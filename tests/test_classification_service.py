"""
Tests for ClassificationService: declines, approvals and the safety cap.
"""

from autowsus.application.classification_service import ClassificationService
from autowsus.domain.config.settings import UpdatePolicy
from autowsus.domain.errors import CatalogError

from conftest import NOW, FakeCatalogClient, make_record


def approvable_records(count):
    return [make_record(f"ok-{i}", title=f"Security Update {i}") for i in range(count)]


class TestClassificationService:
    """Decline and approval behaviour against a fake catalog."""

    def setup_method(self):
        self.catalog = FakeCatalogClient()
        self.service = ClassificationService(self.catalog, UpdatePolicy())

    def test_declines_counted_per_category(self):
        self.catalog.records = [
            make_record("e", is_expired=True),
            make_record("s", is_superseded=True),
            make_record("o", days_old=300),
        ]
        outcome = self.service.run(NOW)

        assert outcome.succeeded
        counts = outcome.value
        assert (counts.declined_expired, counts.declined_superseded, counts.declined_old) == (1, 1, 1)
        assert sorted(self.catalog.declined) == ["e", "o", "s"]

    def test_failed_decline_is_warning_and_loop_continues(self):
        self.catalog.records = [make_record("e1", is_expired=True), make_record("e2", is_expired=True)]
        self.catalog.fail_decline = {"e1"}

        outcome = self.service.run(NOW)

        assert outcome.succeeded
        assert outcome.value.declined_expired == 1
        assert self.catalog.declined == ["e2"]
        assert len(outcome.warnings) == 1
        assert "e1" in outcome.warnings[0]

    def test_approval_cap_exceeded_skips_all(self):
        self.catalog.records = approvable_records(101)

        outcome = self.service.run(NOW)

        assert outcome.value.approved == 0
        assert outcome.value.approvals_capped
        assert self.catalog.approved == []
        assert len(outcome.warnings) == 1
        warning = outcome.warnings[0]
        listed = warning.split("First 10: ", 1)[1].split("; ")
        assert len(listed) == 10
        assert listed[0] == "Security Update 0"

    def test_approval_at_cap_attempts_all(self):
        self.catalog.records = approvable_records(100)

        outcome = self.service.run(NOW)

        assert outcome.value.approved == 100
        assert len(self.catalog.approved) == 100
        assert all(group == "All Computers" for _, group in self.catalog.approved)
        assert outcome.warnings == []

    def test_failed_approval_is_warning(self):
        self.catalog.records = approvable_records(3)
        self.catalog.fail_approve = {"ok-1"}

        outcome = self.service.run(NOW)

        assert outcome.succeeded
        assert outcome.value.approved == 2
        assert len(outcome.warnings) == 1

    def test_auto_approve_disabled(self):
        service = ClassificationService(self.catalog, UpdatePolicy(auto_approve=False))
        self.catalog.records = approvable_records(3)
        outcome = service.run(NOW)
        assert outcome.value.approved == 0
        assert self.catalog.approved == []

    def test_fetch_failure_fails_phase(self):
        self.catalog.fetch_error = CatalogError("timeout")
        outcome = self.service.run(NOW)
        assert not outcome.succeeded
        assert "timeout" in outcome.error

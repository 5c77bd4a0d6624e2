"""Tests for audit entries."""

import json

from api.audit import AuditAction, audit_logger, build_audit_entry, log_audit


class TestAuditAction:
    """Tests for AuditAction values."""

    def test_values_are_snake_case_strings(self):
        assert AuditAction.SECTION_CREATE.value == "section_create"
        assert AuditAction.SECTION_VIDEO_REORDER.value == "section_video_reorder"
        assert AuditAction.VIDEO_USAGE_RECONCILE == "video_usage_reconcile"

    def test_every_section_mutation_has_an_action(self):
        values = {action.value for action in AuditAction}
        for expected in (
            "section_create",
            "section_update",
            "section_delete",
            "section_reorder",
            "section_video_add",
            "section_video_update",
            "section_video_remove",
            "section_video_reorder",
        ):
            assert expected in values


class TestBuildAuditEntry:
    """Tests for build_audit_entry."""

    def test_minimal_entry(self):
        entry = build_audit_entry(AuditAction.SECTION_REORDER)
        assert entry["action"] == "section_reorder"
        assert entry["success"] is True
        assert "timestamp" in entry
        assert "client_ip" not in entry
        assert "details" not in entry

    def test_full_entry(self):
        entry = build_audit_entry(
            AuditAction.SECTION_VIDEO_ADD,
            client_ip="10.0.0.5",
            user_agent="pytest",
            resource_type="section",
            resource_id=3,
            resource_name="Featured",
            details={"video_id": 9},
            request_id="req-1",
        )
        assert entry["client_ip"] == "10.0.0.5"
        assert entry["resource_id"] == 3
        assert entry["resource_name"] == "Featured"
        assert entry["details"] == {"video_id": 9}
        assert entry["request_id"] == "req-1"
        json.dumps(entry)

    def test_resource_id_zero_kept(self):
        assert build_audit_entry(AuditAction.SECTION_DELETE, resource_id=0)["resource_id"] == 0

    def test_long_user_agent_truncated(self):
        entry = build_audit_entry(AuditAction.SECTION_UPDATE, user_agent="x" * 5000)
        assert len(entry["user_agent"]) < 5000
        assert entry["user_agent"].endswith("...")

    def test_failure_with_error(self):
        entry = build_audit_entry(AuditAction.SECTION_DELETE, success=False, error="e" * 1000)
        assert entry["success"] is False
        assert len(entry["error"]) == 500


class TestLogAudit:
    """log_audit is a no-op while audit logging is disabled."""

    def test_disabled_writes_nothing(self, monkeypatch):
        written = []
        monkeypatch.setattr(audit_logger.logger, "info", written.append)

        log_audit(AuditAction.SECTION_CREATE, resource_type="section", resource_id=1)

        assert written == []

    def test_enabled_writes_json_line(self, monkeypatch):
        written = []
        monkeypatch.setattr("api.audit.AUDIT_LOG_ENABLED", True)
        monkeypatch.setattr(audit_logger.logger, "info", written.append)

        log_audit(AuditAction.SECTION_CREATE, resource_type="section", resource_id=1, resource_name="Top")

        (line,) = written
        entry = json.loads(line)
        assert entry["action"] == "section_create"
        assert entry["resource_name"] == "Top"

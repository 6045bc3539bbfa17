"""Unit tests for role event audit logging."""

import json

from onboarding.core import audit


def test_log_role_event_creates_file(audit_log):
    """Test that logging creates the audit file."""
    assert not audit_log.exists()

    audit.log_role_event("role_create", "role-1", operator="uid-admin", details={"name": "Agents"})

    assert audit_log.exists()
    assert audit_log.stat().st_mode & 0o777 == 0o600


def test_log_role_event_creates_valid_json(audit_log):
    """Test that logged events are valid JSON."""
    audit.log_role_event(
        "role_revoke",
        "profile-alice",
        operator="uid-admin",
        details={"role_id": "role-agents", "reason": "no longer working for us"},
    )

    event = json.loads(audit_log.read_text().splitlines()[0])

    assert event["event_type"] == "role_revoke"
    assert event["target"] == "profile-alice"
    assert event["operator"] == "uid-admin"
    assert event["success"] is True
    assert event["details"]["reason"] == "no longer working for us"
    assert "timestamp" in event
    assert "signature" in event


def test_log_multiple_events(audit_log):
    """Test logging multiple events in sequence."""
    events = [
        ("role_create", "role-1", True),
        ("role_assign", "profile-1", True),
        ("role_delete", "role-1", False),
    ]
    for event_type, target, success in events:
        audit.log_role_event(event_type, target, success=success)

    lines = audit_log.read_text().splitlines()
    assert len(lines) == 3
    assert [json.loads(line)["event_type"] for line in lines] == ["role_create", "role_assign", "role_delete"]
    assert json.loads(lines[2])["success"] is False


def test_verify_audit_log_valid_signatures(audit_log):
    """Test signature verification with valid events."""
    audit.log_role_event("role_create", "role-1")
    audit.log_role_event("role_update", "role-1", details={"before": [], "after": ["role.view"]})

    assert audit.verify_audit_log() == (2, 2)


def test_verify_audit_log_detects_tampering(audit_log):
    """Test that tampering is detected."""
    audit.log_role_event("role_assign", "profile-1", details={"role_ids": ["role-agents"]})

    event = json.loads(audit_log.read_text())
    event["details"]["role_ids"] = ["role-admin"]
    audit_log.write_text(json.dumps(event) + "\n")

    assert audit.verify_audit_log() == (1, 0)


def test_verify_audit_log_missing_file(audit_log):
    assert audit.verify_audit_log() == (0, 0)


def test_unsigned_when_key_empty(audit_log, monkeypatch):
    monkeypatch.setenv("AUDIT_LOG_SIGNING_KEY", "")
    audit.log_role_event("role_create", "role-1")

    event = json.loads(audit_log.read_text())
    assert "signature" not in event
    assert audit.verify_audit_log() == (1, 0)


def test_safe_log_role_event_reports_failure(audit_log, monkeypatch):
    def _broken(*args, **kwargs):
        raise OSError("disk full")

    monkeypatch.setattr(audit, "_ensure_audit_dir", _broken)

    assert audit.safe_log_role_event("role_create", "role-1") is False
    assert not audit_log.exists()


def test_configure_moves_log(tmp_path, monkeypatch):
    monkeypatch.setattr(audit, "AUDIT_LOG_DIR", audit.AUDIT_LOG_DIR)
    monkeypatch.setattr(audit, "AUDIT_LOG_FILE", audit.AUDIT_LOG_FILE)

    audit.configure(tmp_path / "elsewhere")
    audit.log_role_event("role_delete", "role-1")

    assert (tmp_path / "elsewhere" / "role-events.jsonl").exists()


def test_demo_key_used_when_no_key_configured(audit_log, monkeypatch):
    monkeypatch.delenv("AUDIT_LOG_SIGNING_KEY", raising=False)
    monkeypatch.setenv("DEMO_MODE", "true")
    monkeypatch.setattr(audit, "_default_secret_paths", [])

    audit.log_role_event("role_create", "role-1")

    assert "signature" in json.loads(audit_log.read_text())
    assert audit.verify_audit_log() == (1, 1)


def test_unsigned_outside_demo_without_key(audit_log, monkeypatch):
    monkeypatch.delenv("AUDIT_LOG_SIGNING_KEY", raising=False)
    monkeypatch.setenv("DEMO_MODE", "false")
    monkeypatch.setattr(audit, "_default_secret_paths", [])

    audit.log_role_event("role_create", "role-1")

    assert "signature" not in json.loads(audit_log.read_text())

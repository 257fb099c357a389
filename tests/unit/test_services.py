"""Unit tests for error classification, serialization, audit and counters."""

from datetime import datetime, timezone
from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy.exc import OperationalError, SQLAlchemyError

from tenantdesk.auth.context import RequestContext
from tenantdesk.core.enums import ErrorCode
from tenantdesk.core.errors import classify_error
from tenantdesk.db.models import ActivityEvent, AdminCount, AuditLog, Ticket
from tenantdesk.services.audit import emit_activity, emit_audit, record_auth_failure
from tenantdesk.services.counts import adjust_count, get_counts, recalc_all_counts
from tenantdesk.services.errors import function_name_from_path, record_error_event
from tenantdesk.services.serialization import (
    column_attr,
    column_names,
    json_safe,
    model_to_dict,
)


@pytest.mark.unit
class TestClassifyError:
    @pytest.mark.parametrize(
        "exc,expected",
        [
            (TimeoutError("slow"), ErrorCode.TIMEOUT),
            (RuntimeError("request timed out"), ErrorCode.TIMEOUT),
            (KeyError("Ticket not found"), ErrorCode.NOT_FOUND),
            (RuntimeError("401 Unauthorized"), ErrorCode.AUTH_FAILED),
            (PermissionError("Forbidden area"), ErrorCode.FORBIDDEN),
            (ValueError("invalid status"), ErrorCode.VALIDATION),
            (RuntimeError("ECONNREFUSED 10.0.0.1"), ErrorCode.EXTERNAL_SERVICE),
            (RuntimeError("duplicate key value"), ErrorCode.DB_ERROR),
            (SQLAlchemyError("boom"), ErrorCode.DB_ERROR),
            (ConnectionResetError("peer reset"), ErrorCode.EXTERNAL_SERVICE),
            (ZeroDivisionError("division by zero"), ErrorCode.INTERNAL),
        ],
    )
    def test_classification(self, exc, expected):
        assert classify_error(exc) is expected

    def test_function_name_from_path(self):
        assert function_name_from_path("/v1/tickets/123") == "tickets"
        assert function_name_from_path("/health") == "health"
        assert function_name_from_path("/") == "unknown"


@pytest.mark.unit
class TestRecordErrorEvent:
    def test_persisting_failure_is_swallowed(self):
        class BrokenSession:
            def add(self, row):
                raise OperationalError("INSERT", {}, Exception("disk I/O error"))

            def rollback(self):
                pass

            def close(self):
                pass

        result = record_error_event(
            RuntimeError("x"), "req-1", "/v1/tickets", session_factory=BrokenSession
        )
        assert result is None

    def test_message_is_truncated(self, test_db):
        code = record_error_event(
            ValueError("invalid " + "x" * 2000), "req-2", "/v1/things", session_factory=test_db
        )
        assert code == "validation"

        db = test_db()
        try:
            from tenantdesk.db.models import ErrorEvent

            event = db.query(ErrorEvent).one()
            assert len(event.message) == 1000
            assert len(event.stack_summary) <= 500
        finally:
            db.close()


@pytest.mark.unit
class TestSerialization:
    def test_json_safe(self):
        value_id = uuid4()
        now = datetime(2024, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        assert json_safe({"id": value_id, "at": now, "n": Decimal("1.5"), "l": (value_id,)}) == {
            "id": str(value_id),
            "at": "2024-01-02T03:04:05+00:00",
            "n": 1.5,
            "l": [str(value_id)],
        }

    def test_model_to_dict_uses_column_names(self):
        ticket = Ticket(id=uuid4(), account_id=uuid4(), subject="Broken", meta={"a": 1})
        data = model_to_dict(ticket)
        assert data["metadata"] == {"a": 1}
        assert "meta" not in data
        assert model_to_dict(ticket, columns=["subject"]) == {"subject": "Broken"}
        assert "subject" not in model_to_dict(ticket, exclude=["subject"])
        assert model_to_dict(None) == {}

    def test_column_helpers(self):
        assert "metadata" in column_names(Ticket)
        assert column_attr(Ticket, "metadata") is Ticket.meta
        assert column_attr(Ticket, "nope") is None


@pytest.mark.unit
class TestAuditEmission:
    def test_audit_and_activity_rows(self, db_session, seed):
        account_id = seed.account("Acme")
        ctx = RequestContext(request_id="req-9", person_id=uuid4(), account_id=account_id)

        assert emit_audit(db_session, ctx, "ticket.created", "ticket", uuid4(), after={"a": 1})
        assert emit_activity(db_session, ctx, "ticket.created", "Opened", "ticket", uuid4())

        audit = db_session.query(AuditLog).one()
        assert audit.request_id == "req-9"
        assert audit.after_data == {"a": 1}
        assert audit.meta == {}
        activity = db_session.query(ActivityEvent).one()
        assert activity.summary == "Opened"

    def test_impersonation_is_recorded(self, db_session, seed):
        account_id = seed.account("Acme")
        staff_id, session_id = uuid4(), uuid4()
        ctx = RequestContext(
            request_id="req-10",
            person_id=uuid4(),
            account_id=account_id,
            impersonating=True,
            real_person_id=staff_id,
            impersonation_session_id=session_id,
        )
        emit_audit(db_session, ctx, "ticket.updated", "ticket")

        audit = db_session.query(AuditLog).one()
        assert audit.meta == {
            "impersonated_by": str(staff_id),
            "impersonation_session_id": str(session_id),
        }

    def test_auth_failure_row(self, db_session):
        record_auth_failure(db_session, "req-11", "Invalid token format", "x" * 300)

        row = db_session.query(AuditLog).one()
        assert row.action == "auth.failed"
        assert row.account_id is None
        assert len(row.meta["user_agent"]) == 200


@pytest.mark.unit
class TestAdminCounts:
    def test_adjust_floors_at_zero(self, db_session, seed):
        account_id = seed.account("Acme")
        adjust_count(db_session, account_id, "tickets", 2)
        adjust_count(db_session, account_id, "tickets", -5)
        db_session.commit()

        assert get_counts(db_session, account_id) == {"tickets": 0}

    def test_recalculate_from_source_tables(self, db_session, seed):
        account_id = seed.account("Acme")
        person_id = seed.person()
        seed.membership(person_id, account_id, "admin")
        db_session.add_all(
            [
                Ticket(account_id=account_id, subject="One"),
                Ticket(account_id=account_id, subject="Two", is_active=False),
            ]
        )
        adjust_count(db_session, account_id, "members", 10)
        db_session.commit()

        counts = recalc_all_counts(db_session, account_id)
        db_session.commit()

        assert counts == {"members": 1, "apps": 0, "tickets": 1, "documents": 0}
        assert db_session.query(AdminCount).filter_by(account_id=account_id).count() == 4

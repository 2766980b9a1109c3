from decimal import Decimal

from app.models.audit_log import AuditLog
from app.models.enrollment import Enrollment
from app.models.payment import Payment
from tests.conftest import money


def submit(client, headers=None, **fields):
    body = {
        "course_id": "agentic-ai-bootcamp",
        "amount": "100.00",
        "payer_name": "Ada Lovelace",
        "payer_email": "ada@example.com",
        "transaction_id": "ZELLE-7781",
    }
    body.update(fields)
    return client.post("/manual-payments/", json=body, headers=headers or {})


def test_submit_manual_payment(client, make_course, learner_headers):
    make_course()

    response = submit(client, learner_headers)

    assert response.status_code == 201
    payment = response.json()
    assert payment["status"] == "pending_manual_verification"
    assert payment["user_id"] == "user-ada"
    assert payment["course_title"] == "Agentic AI Bootcamp"
    assert money(payment["amount"]) == Decimal("100.00")
    assert payment["status_history"] == []

    mine = client.get("/manual-payments/me", headers=learner_headers).json()
    assert [p["id"] for p in mine] == [payment["id"]]


def test_submit_for_unknown_course(client, learner_headers):
    response = submit(client, learner_headers, course_id="missing")
    assert response.status_code == 404


def test_verify_enrolls_and_records_payment(client, db, make_course, learner_headers, admin_headers, outbox):
    make_course()
    payment_id = submit(client, learner_headers).json()["id"]

    response = client.post(f"/admin/manual-payments/{payment_id}/verify", headers=admin_headers)

    assert response.status_code == 200
    verified = response.json()
    assert verified["status"] == "verified_and_enrolled"
    assert verified["enrollment_id"] == "user-ada_agentic-ai-bootcamp_batch1"
    assert verified["enrollment_batch"] == 1
    assert verified["email_sent"] is True
    assert verified["verified_at"] is not None
    assert verified["status_history"][0]["from"] == "pending_manual_verification"
    assert verified["status_history"][0]["to"] == "verified_and_enrolled"
    assert outbox[-1]["template_params"]["to_email"] == "ada@example.com"

    db.expire_all()
    ledger = db.get(Payment, verified["payment_record_id"])
    assert ledger.payment_method == "manual"
    assert ledger.payment_id == "ZELLE-7781"
    enrollment = db.query(Enrollment).one()
    assert enrollment.enrollment_source == "admin_manual"
    assert enrollment.enrolled_by == verified["verified_by"]

    audit = db.query(AuditLog).filter(AuditLog.resource == "manual_payment").one()
    assert audit.action == "status_change"

    again = client.post(f"/admin/manual-payments/{payment_id}/verify", headers=admin_headers)
    assert again.status_code == 409


def test_reject_creates_nothing(client, db, make_course, learner_headers, admin_headers):
    make_course()
    payment_id = submit(client, learner_headers).json()["id"]

    response = client.post(
        f"/admin/manual-payments/{payment_id}/reject",
        json={"reason": "duplicate"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    rejected = response.json()
    assert rejected["status"] == "rejected"
    assert rejected["rejection_reason"] == "duplicate"
    assert rejected["status_history"][-1]["reason"] == "duplicate"

    db.expire_all()
    assert db.query(Enrollment).count() == 0
    assert db.query(Payment).count() == 0


def test_archive_and_reopen(client, make_course, learner_headers, admin_headers):
    make_course()
    payment_id = submit(client, learner_headers).json()["id"]

    archived = client.post(f"/admin/manual-payments/{payment_id}/archive", headers=admin_headers)
    assert archived.json()["status"] == "archived"

    blocked = client.post(f"/admin/manual-payments/{payment_id}/verify", headers=admin_headers)
    assert blocked.status_code == 409
    assert blocked.json()["type"] == "consistency_error"

    reopened = client.post(f"/admin/manual-payments/{payment_id}/reopen", headers=admin_headers)
    assert reopened.json()["status"] == "pending_manual_verification"
    assert len(reopened.json()["status_history"]) == 2

    listed = client.get(
        "/admin/manual-payments",
        params={"status": "pending_manual_verification"},
        headers=admin_headers,
    ).json()
    assert listed["total"] == 1


def test_invalid_transition_is_a_conflict(client, make_course, learner_headers, admin_headers):
    make_course()
    payment_id = submit(client, learner_headers).json()["id"]

    response = client.post(f"/admin/manual-payments/{payment_id}/reopen", headers=admin_headers)

    assert response.status_code == 409
    assert "pending_manual_verification" in response.json()["error"]


def test_anonymous_submission_cannot_be_verified(client, make_course, admin_headers):
    make_course()
    payment = submit(client).json()
    assert payment["user_id"] is None

    response = client.post(f"/admin/manual-payments/{payment['id']}/verify", headers=admin_headers)

    assert response.status_code == 400
    assert response.json()["type"] == "validation_error"


def test_verify_unknown_payment(client, admin_headers):
    response = client.post("/admin/manual-payments/999/verify", headers=admin_headers)
    assert response.status_code == 404


def test_transaction_id_is_recorded_once(client, db, make_course, learner_headers, other_headers, admin_headers):
    make_course()
    first = submit(client, learner_headers).json()["id"]
    second = submit(client, other_headers).json()["id"]
    assert client.post(f"/admin/manual-payments/{first}/verify", headers=admin_headers).status_code == 200

    response = client.post(f"/admin/manual-payments/{second}/verify", headers=admin_headers)

    assert response.status_code == 409
    assert "already recorded" in response.json()["error"]
    db.expire_all()
    assert db.query(Payment).filter(Payment.payment_id == "ZELLE-7781").count() == 1
    assert db.query(Enrollment).count() == 1

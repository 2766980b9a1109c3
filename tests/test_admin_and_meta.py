import pytest

from app.core.init import init_admins, seed_catalog
from app.models.admin import Admin
from app.models.batch import CourseBatch
from app.models.course import Course
from tests.conftest import bearer


@pytest.mark.parametrize(
    "path",
    ["/admin/enrollments", "/admin/payments", "/admin/coupons", "/admin/audit-logs", "/admin/emails"],
)
def test_admin_endpoints_require_an_admin(client, learner_headers, path):
    assert client.get(path).status_code == 401

    response = client.get(path, headers=learner_headers)
    assert response.status_code == 403
    assert response.json() == {
        "success": False,
        "error": "Admin access required",
        "type": "http_error",
    }


def test_admin_email_is_case_insensitive(client):
    headers = bearer("user-admin", email="Admin@Example.com")
    assert client.get("/admin/enrollments", headers=headers).status_code == 200


def test_invalid_token_is_rejected(client):
    response = client.get("/enrollments/me", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_token_issuer_follows_settings(client, learner_headers, override_settings):
    assert client.get("/enrollments/me", headers=learner_headers).status_code == 200

    override_settings(jwt_issuer="Another Issuer")
    response = client.get("/enrollments/me", headers=learner_headers)

    assert response.status_code == 401
    assert response.json()["error"] == "Invalid token issuer"


def test_public_config(client, override_settings):
    config = client.get("/config").json()
    assert config["features"] == {
        "coupons": True,
        "paypal": True,
        "emailjs": True,
        "progress_tracking": True,
    }
    assert config["paypal"]["client_id"] == "test-client"

    override_settings(paypal_client_id="", enable_coupons=False)
    config = client.get("/config").json()
    assert config["features"]["paypal"] is False
    assert config["features"]["coupons"] is False
    assert config["paypal"]["client_id"] is None


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json()["database"] == "healthy"


def test_email_logs_and_stats(client, make_course, admin_headers, learner_headers, paypal_payment):
    make_course()
    client.post(
        "/checkout/paypal",
        json={"course_id": "agentic-ai-bootcamp", "payment": paypal_payment()},
        headers=learner_headers,
    )

    logs = client.get("/admin/emails", params={"user_id": "user-ada"}, headers=admin_headers).json()
    assert logs["total"] == 1
    assert logs["emails"][0]["email_type"] == "enrollment_confirmation"
    assert logs["emails"][0]["status"] == "sent"

    stats = client.get("/admin/emails/stats", headers=admin_headers).json()
    assert stats["sent"] == 1
    assert stats["by_type"] == {"enrollment_confirmation": 1}


def test_orphaned_payments(client, make_course, admin_headers, learner_headers, paypal_payment):
    make_course()
    client.post(
        "/checkout/paypal",
        json={"course_id": "agentic-ai-bootcamp", "payment": paypal_payment()},
        headers=learner_headers,
    )
    assert client.get("/admin/payments/orphaned", headers=admin_headers).json() == []

    deleted = client.delete(
        "/admin/enrollments/user-ada_agentic-ai-bootcamp_batch1", headers=admin_headers
    )
    assert deleted.status_code == 200

    orphaned = client.get("/admin/payments/orphaned", headers=admin_headers).json()
    assert [p["payment_id"] for p in orphaned] == ["CAPTURE-1"]

    audit = client.get(
        "/admin/audit-logs", params={"resource": "enrollment", "action": "delete"}, headers=admin_headers
    ).json()
    assert audit["total"] == 1
    assert audit["logs"][0]["previous_data"]["user_id"] == "user-ada"


def test_payment_status_update(client, make_course, admin_headers, learner_headers, paypal_payment):
    make_course()
    record_id = client.post(
        "/checkout/paypal",
        json={"course_id": "agentic-ai-bootcamp", "payment": paypal_payment()},
        headers=learner_headers,
    ).json()["payment_record_id"]

    response = client.put(
        f"/admin/payments/{record_id}/status",
        json={"status": "refunded", "reason": "Requested by student"},
        headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["status"] == "refunded"
    listed = client.get("/admin/payments", params={"status": "refunded"}, headers=admin_headers)
    assert listed.json()["total"] == 1


def test_admin_course_management(client, admin_headers):
    created = client.post(
        "/admin/courses",
        json={
            "id": "data-engineering",
            "title": "Data Engineering",
            "price": "250.00",
            "is_published": False,
            "batches": [{"batch_number": 1, "status": "upcoming"}],
        },
        headers=admin_headers,
    )
    assert created.status_code == 201

    assert client.get("/courses/data-engineering").status_code == 404
    assert client.get("/courses/").json()["total"] == 0
    assert client.get("/admin/courses", headers=admin_headers).json()["total"] == 1

    client.put("/admin/courses/data-engineering", json={"is_published": True}, headers=admin_headers)
    assert client.get("/courses/data-engineering").status_code == 200

    batch = client.post(
        "/admin/courses/data-engineering/batches",
        json={"batch_number": 2, "status": "upcoming", "max_capacity": 10},
        headers=admin_headers,
    )
    assert batch.status_code == 201
    duplicate = client.post(
        "/admin/courses/data-engineering/batches",
        json={"batch_number": 2, "status": "upcoming"},
        headers=admin_headers,
    )
    assert duplicate.status_code == 409

    activated = client.put(
        "/admin/courses/data-engineering/batches/1",
        json={"status": "active"},
        headers=admin_headers,
    )
    assert activated.json()["status"] == "active"

    next_batch = client.get("/courses/data-engineering/batches/next").json()
    assert next_batch["batch"]["batch_number"] == 1


@pytest.mark.parametrize("field", ["status", "max_capacity", "class_links", "schedule", "videos"])
def test_batch_update_rejects_null_for_required_fields(client, db, make_course, admin_headers, field):
    make_course()

    response = client.put(
        "/admin/courses/agentic-ai-bootcamp/batches/1", json={field: None}, headers=admin_headers
    )

    assert response.status_code == 422
    assert response.json()["type"] == "validation_error"
    db.expire_all()
    assert db.query(CourseBatch).one().status == "active"


def test_batch_update_allows_clearing_optional_fields(client, make_course, admin_headers):
    make_course()
    client.put(
        "/admin/courses/agentic-ai-bootcamp/batches/1",
        json={"name": "Spring cohort"},
        headers=admin_headers,
    )

    response = client.put(
        "/admin/courses/agentic-ai-bootcamp/batches/1", json={"name": None}, headers=admin_headers
    )

    assert response.status_code == 200
    assert response.json()["name"] is None


@pytest.mark.parametrize("field", ["title", "price", "coming_soon", "is_published"])
def test_course_update_rejects_null_for_required_fields(client, db, make_course, admin_headers, field):
    make_course()

    response = client.put("/admin/courses/agentic-ai-bootcamp", json={field: None}, headers=admin_headers)

    assert response.status_code == 422
    db.expire_all()
    assert db.get(Course, "agentic-ai-bootcamp").title == "Agentic AI Bootcamp"


def test_init_admins_is_idempotent(db):
    assert init_admins(db) == 1
    assert init_admins(db) == 0
    admin = db.query(Admin).one()
    assert admin.email == "admin@example.com"
    assert admin.is_verified


def test_seed_catalog(db):
    catalog = [
        {
            "id": "agentic-ai-bootcamp",
            "title": "Agentic AI Bootcamp",
            "price": "100.00",
            "batches": [{"batch_number": 1, "status": "active"}],
        },
        {"id": "Not A Slug", "title": "Broken", "price": "10.00"},
    ]

    stats = seed_catalog(db, catalog)
    assert stats == {"courses_created": 1, "batches_created": 1, "skipped": 1}

    catalog[0]["batches"].append({"batch_number": 2, "status": "upcoming"})
    stats = seed_catalog(db, {"courses": catalog[:1]})
    assert stats == {"courses_created": 0, "batches_created": 1, "skipped": 0}

    assert db.query(Course).count() == 1
    assert db.query(CourseBatch).count() == 2


def test_seed_catalog_from_file(db, tmp_path):
    path = tmp_path / "catalog.json"
    path.write_text(
        '[{"id": "prompting-101", "title": "Prompting 101", "price": "0.00", "coming_soon": true}]',
        encoding="utf-8",
    )

    assert seed_catalog(db, path)["courses_created"] == 1
    assert db.get(Course, "prompting-101").coming_soon is True

from decimal import Decimal

import pytest

from app.models.coupon import Coupon, CouponUsage
from app.models.email_log import EmailLog
from app.models.enrollment import Enrollment
from app.models.payment import Payment
from app.services.enrollment import EnrollmentService
from tests.conftest import money


def test_paypal_checkout_enrolls_and_emails(client, db, make_course, learner_headers, paypal_payment, outbox):
    make_course()

    response = client.post(
        "/checkout/paypal",
        json={"course_id": "agentic-ai-bootcamp", "payment": paypal_payment()},
        headers=learner_headers,
    )

    assert response.status_code == 201
    result = response.json()
    assert result["success"] is True
    assert result["enrollment_id"] == "user-ada_agentic-ai-bootcamp_batch1"
    assert result["batch_number"] == 1
    assert money(result["amount_paid"]) == Decimal("100.00")
    assert result["email_sent"] is True
    assert result["warning"] is None

    params = outbox[0]["template_params"]
    assert outbox[0]["service_id"] == "service_test"
    assert params["to_email"] == "ada@example.com"
    assert params["course_title"] == "Agentic AI Bootcamp"
    assert params["order_id"] == "ORDER-1"

    db.expire_all()
    payment = db.query(Payment).one()
    assert (payment.user_id, payment.payment_method, payment.status) == ("user-ada", "paypal", "completed")
    enrollment = db.query(Enrollment).one()
    assert enrollment.payment_id == "CAPTURE-1"
    assert enrollment.enrollment_source == "web_purchase"
    assert db.query(EmailLog).one().status == "sent"


def test_checkout_with_coupon_records_usage(client, db, make_course, make_coupon, learner_headers, paypal_payment):
    make_course()
    make_coupon(code="HALF50")

    response = client.post(
        "/checkout/paypal",
        json={
            "course_id": "agentic-ai-bootcamp",
            "coupon_code": "half50",
            "payment": paypal_payment(amount="50.00"),
        },
        headers=learner_headers,
    )

    assert response.status_code == 201
    result = response.json()
    assert money(result["discount_amount"]) == Decimal("50.00")
    assert money(result["original_amount"]) == Decimal("100.00")
    assert result["coupon_code"] == "HALF50"

    db.expire_all()
    coupon = db.query(Coupon).filter(Coupon.code == "HALF50").one()
    assert coupon.usage_count == 1
    assert coupon.usage_history[0]["payment_id"] == "CAPTURE-1"
    assert db.query(CouponUsage).count() == 1
    assert db.query(Payment).one().coupon_code == "HALF50"


def test_retrying_a_purchase_keeps_one_enrollment(client, db, make_course, learner_headers, paypal_payment):
    make_course()
    for attempt in range(2):
        response = client.post(
            "/checkout/paypal",
            json={
                "course_id": "agentic-ai-bootcamp",
                "payment": paypal_payment(order_id=f"ORDER-{attempt}", payment_id=f"CAP-{attempt}"),
            },
            headers=learner_headers,
        )
        assert response.status_code == 201

    db.expire_all()
    assert db.query(Enrollment).count() == 1
    assert db.query(Enrollment).one().payment_id == "CAP-1"


def test_resubmitted_capture_is_recorded_once(client, db, make_course, learner_headers, paypal_payment, outbox):
    make_course()
    body = {"course_id": "agentic-ai-bootcamp", "payment": paypal_payment()}

    first = client.post("/checkout/paypal", json=body, headers=learner_headers)
    second = client.post("/checkout/paypal", json=body, headers=learner_headers)

    assert (first.status_code, second.status_code) == (201, 201)
    assert second.json()["enrollment_id"] == first.json()["enrollment_id"]
    assert second.json()["payment_record_id"] == first.json()["payment_record_id"]
    assert second.json()["warning"] == "This payment was already processed"
    assert len(outbox) == 1

    db.expire_all()
    assert db.query(Payment).filter(Payment.payment_id == "CAPTURE-1").count() == 1
    assert db.query(Enrollment).count() == 1


def test_capture_cannot_be_reused_by_another_user(client, db, make_course, learner_headers, other_headers, paypal_payment):
    make_course()
    body = {"course_id": "agentic-ai-bootcamp", "payment": paypal_payment()}
    client.post("/checkout/paypal", json=body, headers=learner_headers)

    response = client.post("/checkout/paypal", json=body, headers=other_headers)

    assert response.status_code == 409
    db.expire_all()
    assert db.query(Payment).count() == 1
    assert db.query(Enrollment).filter(Enrollment.user_id == "user-grace").count() == 0


def test_email_failure_keeps_enrollment(client, db, make_course, learner_headers, paypal_payment, failing_email):
    make_course()

    response = client.post(
        "/checkout/paypal",
        json={"course_id": "agentic-ai-bootcamp", "payment": paypal_payment()},
        headers=learner_headers,
    )

    assert response.status_code == 201
    result = response.json()
    assert result["email_sent"] is False
    assert "confirmation email was not sent" in result["warning"]

    db.expire_all()
    assert db.query(Enrollment).count() == 1
    log = db.query(EmailLog).one()
    assert log.status == "failed"
    assert "500" in log.error_message


def test_unconfigured_email_is_skipped(client, db, make_course, learner_headers, paypal_payment, override_settings):
    make_course()
    override_settings(emailjs_service_id="")

    response = client.post(
        "/checkout/paypal",
        json={"course_id": "agentic-ai-bootcamp", "payment": paypal_payment()},
        headers=learner_headers,
    )

    assert response.status_code == 201
    assert response.json()["warning"].endswith("Email service not configured")
    db.expire_all()
    assert db.query(EmailLog).one().status == "skipped"


def test_failed_enrollment_rolls_back_payment(client, db, make_course, learner_headers, paypal_payment, monkeypatch):
    make_course()

    def broken_write(self, *args, **kwargs):
        raise RuntimeError("database went away")

    monkeypatch.setattr(EnrollmentService, "write_enrollment", broken_write)

    with pytest.raises(RuntimeError):
        client.post(
            "/checkout/paypal",
            json={"course_id": "agentic-ai-bootcamp", "payment": paypal_payment()},
            headers=learner_headers,
        )

    db.expire_all()
    assert db.query(Payment).count() == 0
    assert db.query(Enrollment).count() == 0


@pytest.mark.parametrize(
    "payment_fields, error",
    [
        ({"amount": "99.99"}, "below the order total"),
        ({"transaction_status": "PENDING"}, "Payment is not completed"),
    ],
)
def test_checkout_rejects_bad_confirmation(
    client, db, make_course, learner_headers, paypal_payment, payment_fields, error
):
    make_course()

    response = client.post(
        "/checkout/paypal",
        json={"course_id": "agentic-ai-bootcamp", "payment": paypal_payment(**payment_fields)},
        headers=learner_headers,
    )

    assert response.status_code == 400
    assert error in response.json()["error"]
    db.expire_all()
    assert db.query(Payment).count() == 0


def test_checkout_when_paypal_disabled(client, make_course, learner_headers, paypal_payment, override_settings):
    make_course()
    override_settings(paypal_client_id="")

    response = client.post(
        "/checkout/paypal",
        json={"course_id": "agentic-ai-bootcamp", "payment": paypal_payment()},
        headers=learner_headers,
    )

    assert response.status_code == 503
    assert response.json() == {
        "success": False,
        "error": "PayPal checkout is not configured",
        "type": "feature_disabled",
    }


def test_checkout_rejects_invalid_coupon(client, make_course, learner_headers, paypal_payment):
    make_course()

    response = client.post(
        "/checkout/paypal",
        json={
            "course_id": "agentic-ai-bootcamp",
            "coupon_code": "NOPE",
            "payment": paypal_payment(),
        },
        headers=learner_headers,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "Invalid coupon code"


def test_full_course_is_a_conflict(client, db, make_course, learner_headers, paypal_payment):
    make_course(batches=[{"batch_number": 1, "status": "completed"}])

    response = client.post(
        "/checkout/paypal",
        json={"course_id": "agentic-ai-bootcamp", "payment": paypal_payment()},
        headers=learner_headers,
    )

    assert response.status_code == 409
    assert response.json()["error"] == "No available batches"
    db.expire_all()
    assert db.query(Payment).count() == 0


def test_checkout_requires_login(client, make_course, paypal_payment):
    make_course()
    response = client.post(
        "/checkout/paypal",
        json={"course_id": "agentic-ai-bootcamp", "payment": paypal_payment()},
    )
    assert response.status_code == 401


def test_free_enrollment_with_full_discount(client, db, make_course, make_coupon, learner_headers):
    make_course()
    make_coupon(code="FREEPASS", discount_value="100")

    response = client.post(
        "/checkout/free",
        json={"course_id": "agentic-ai-bootcamp", "coupon_code": "FREEPASS"},
        headers=learner_headers,
    )

    assert response.status_code == 201
    assert money(response.json()["amount_paid"]) == Decimal("0")

    db.expire_all()
    payment = db.query(Payment).one()
    assert payment.payment_id.startswith("FREE-")
    assert payment.order_id.startswith("FREE-ORDER-")
    assert payment.payment_method == "coupon"
    assert db.query(Enrollment).one().enrollment_source == "free_coupon"

    again = client.post(
        "/checkout/free",
        json={"course_id": "agentic-ai-bootcamp", "coupon_code": "FREEPASS"},
        headers=learner_headers,
    )
    assert again.status_code == 400
    assert again.json()["error"] == "You have already used this coupon the maximum number of times"


def test_free_enrollment_uses_request_settings(client, db, make_course, make_coupon, learner_headers, override_settings, outbox):
    make_course()
    make_coupon(code="FREEPASS", discount_value="100")
    override_settings(payment_currency="EUR", company_name="Acme Academy")

    response = client.post(
        "/checkout/free",
        json={"course_id": "agentic-ai-bootcamp", "coupon_code": "FREEPASS"},
        headers=learner_headers,
    )

    assert response.status_code == 201
    assert "Acme Academy" in outbox[0]["template_params"]["text_content"]
    assert outbox[0]["template_params"]["from_name"] == "Acme Academy Team"
    db.expire_all()
    assert db.query(Payment).one().currency == "EUR"


def test_free_enrollment_needs_full_discount(client, db, make_course, make_coupon, learner_headers):
    make_course()
    make_coupon(code="HALF50")

    response = client.post(
        "/checkout/free",
        json={"course_id": "agentic-ai-bootcamp", "coupon_code": "HALF50"},
        headers=learner_headers,
    )

    assert response.status_code == 400
    db.expire_all()
    assert db.query(Enrollment).count() == 0


def test_free_enrollment_when_coupons_disabled(client, make_course, learner_headers, override_settings):
    make_course()
    override_settings(enable_coupons=False)

    response = client.post(
        "/checkout/free",
        json={"course_id": "agentic-ai-bootcamp", "coupon_code": "FREEPASS"},
        headers=learner_headers,
    )

    assert response.status_code == 503


def test_payments_and_receipt(client, make_course, learner_headers, other_headers, paypal_payment):
    make_course()
    client.post(
        "/checkout/paypal",
        json={"course_id": "agentic-ai-bootcamp", "payment": paypal_payment()},
        headers=learner_headers,
    )

    payments = client.get("/payments/me", headers=learner_headers).json()
    assert len(payments) == 1
    assert payments[0]["order_id"] == "ORDER-1"

    receipt = client.get(
        "/enrollments/user-ada_agentic-ai-bootcamp_batch1/receipt", headers=learner_headers
    )
    assert receipt.status_code == 200
    assert receipt.json()["receipt_number"] == "RCP-ORDER-1"
    assert "Agentic AI Bootcamp" in receipt.json()["html"]

    foreign = client.get(
        "/enrollments/user-ada_agentic-ai-bootcamp_batch1/receipt", headers=other_headers
    )
    assert foreign.status_code == 403

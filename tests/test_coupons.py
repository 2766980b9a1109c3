from datetime import timedelta
from decimal import Decimal

import pytest

from app.core.config import settings
from app.core.decorator import ConflictError, ValidationFailed
from app.models.coupon import Coupon, CouponUsage
from app.schemas.coupon import CouponCreate
from app.services.coupon import CouponService, calculate_discount
from app.utils.dates import utcnow
from tests.conftest import money


def test_percentage_discount_halves_the_price():
    coupon = Coupon(discount_type="percentage", discount_value=Decimal("50"))
    assert calculate_discount(coupon, Decimal("100.00")) == (Decimal("50.00"), Decimal("50.00"))


def test_percentage_discount_is_capped():
    coupon = Coupon(
        discount_type="percentage",
        discount_value=Decimal("50"),
        max_discount_amount=Decimal("20.00"),
    )
    assert calculate_discount(coupon, Decimal("100.00")) == (Decimal("20.00"), Decimal("80.00"))


def test_fixed_discount_never_goes_below_zero():
    coupon = Coupon(discount_type="fixed", discount_value=Decimal("150"))
    assert calculate_discount(coupon, Decimal("99.99")) == (Decimal("99.99"), Decimal("0.00"))


def test_discount_rounds_half_up_to_cents():
    coupon = Coupon(discount_type="percentage", discount_value=Decimal("15"))
    # 15% of 19.99 is 2.9985
    assert calculate_discount(coupon, Decimal("19.99")) == (Decimal("3.00"), Decimal("16.99"))


def test_validate_general_coupon(db, make_course, make_coupon):
    make_course()
    make_coupon(code="half50")

    result = CouponService(db, settings).validate_coupon(
        "HALF50", "user-ada", "agentic-ai-bootcamp", Decimal("100.00")
    )

    assert result.valid
    assert result.coupon_code == "HALF50"
    assert result.discount_amount == Decimal("50.00")
    assert result.final_amount == Decimal("50.00")
    assert result.savings == Decimal("50.00")


def test_coupons_disabled(db, make_coupon):
    make_coupon(code="HALF50")
    disabled = settings.model_copy(update={"enable_coupons": False})

    result = CouponService(db, disabled).validate_coupon("HALF50", "u", "c", 100)

    assert not result.valid
    assert result.error == "Coupons are disabled"


@pytest.mark.parametrize(
    "coupon_fields, user_id, course_id, amount, error",
    [
        ({}, "user-ada", "agentic-ai-bootcamp", "100", None),
        (
            {"valid_from": utcnow() + timedelta(days=2)},
            "user-ada",
            "agentic-ai-bootcamp",
            "100",
            "Coupon is not yet valid",
        ),
        (
            {
                "valid_from": utcnow() - timedelta(days=10),
                "valid_until": utcnow() - timedelta(days=1),
            },
            "user-ada",
            "agentic-ai-bootcamp",
            "100",
            "Coupon has expired",
        ),
        (
            {"target_type": "user_specific", "target_user_id": "user-grace"},
            "user-ada",
            "agentic-ai-bootcamp",
            "100",
            "This coupon is not valid for your account",
        ),
        (
            {"target_type": "course_specific", "course_id": "data-engineering"},
            "user-ada",
            "agentic-ai-bootcamp",
            "100",
            "This coupon is not valid for this course",
        ),
        (
            {"min_order_amount": Decimal("200")},
            "user-ada",
            "agentic-ai-bootcamp",
            "100",
            "Minimum order amount of $200.00 required",
        ),
    ],
)
def test_validate_coupon_rejections(
    db, make_course, make_coupon, coupon_fields, user_id, course_id, amount, error
):
    make_course()
    make_course("data-engineering", title="Data Engineering")
    make_coupon(code="CHECKME", **coupon_fields)

    result = CouponService(db, settings).validate_coupon("CHECKME", user_id, course_id, amount)

    assert result.valid is (error is None)
    assert result.error == error


def test_unknown_and_inactive_codes(db, make_coupon):
    service = CouponService(db, settings)
    coupon = make_coupon(code="SLEEPY")
    service.update_coupon_status(coupon.id, "inactive")

    assert service.validate_coupon("NOPE", "u", "c", 100).error == "Invalid coupon code"
    assert service.validate_coupon("sleepy", "u", "c", 100).error == "Coupon is not active"


def test_usage_limits(db, make_course, make_coupon):
    make_course()
    service = CouponService(db, settings)
    coupon = make_coupon(code="ONCE", usage_limit=2, usage_limit_per_user=1)

    service.record_coupon_usage(
        coupon.id, "user-ada", "agentic-ai-bootcamp", 100, 50, 50, payment_id="P-1"
    )
    db.commit()

    per_user = service.validate_coupon("ONCE", "user-ada", "agentic-ai-bootcamp", 100)
    assert per_user.error == "You have already used this coupon the maximum number of times"

    service.record_coupon_usage(
        coupon.id, "user-grace", "agentic-ai-bootcamp", 100, 50, 50, payment_id="P-2"
    )
    db.commit()

    exhausted = service.validate_coupon("ONCE", "user-alan", "agentic-ai-bootcamp", 100)
    assert exhausted.error == "Coupon usage limit exceeded"


def test_record_usage_appends_history_and_log(db, make_course, make_coupon):
    make_course()
    service = CouponService(db, settings)
    coupon = make_coupon(code="HALF50")

    service.record_coupon_usage(
        coupon.id,
        "user-ada",
        "agentic-ai-bootcamp",
        order_amount=Decimal("100"),
        discount_amount=Decimal("50"),
        final_amount=Decimal("50"),
        payment_id="CAPTURE-1",
        order_id="ORDER-1",
    )
    db.commit()
    db.refresh(coupon)

    assert coupon.usage_count == 1
    assert len(coupon.usage_history) == 1
    entry = coupon.usage_history[0]
    assert entry["user_id"] == "user-ada"
    assert entry["payment_id"] == "CAPTURE-1"
    assert money(entry["final_amount"]) == Decimal("50.00")
    assert db.query(CouponUsage).filter(CouponUsage.coupon_id == coupon.id).count() == 1


def test_record_usage_enforces_limits_when_asked(db, make_course, make_coupon):
    make_course()
    service = CouponService(db, settings)
    coupon = make_coupon(code="ONCE")
    service.record_coupon_usage(coupon.id, "user-ada", "agentic-ai-bootcamp", 100, 50, 50)
    db.commit()

    with pytest.raises(ValidationFailed):
        service.record_coupon_usage(
            coupon.id, "user-ada", "agentic-ai-bootcamp", 100, 50, 50, enforce_limits=True
        )
    db.rollback()

    service.record_coupon_usage(
        coupon.id, "user-ada", "agentic-ai-bootcamp", 100, 50, 50, enforce_limits=False
    )
    db.commit()
    db.refresh(coupon)
    assert coupon.usage_count == 2


def test_create_coupon_rules(db, make_coupon):
    service = CouponService(db, settings)
    make_coupon(code="TAKEN")

    with pytest.raises(ConflictError):
        make_coupon(code="taken")
    with pytest.raises(ValidationFailed, match="between 1 and 100"):
        service.create_coupon(
            CouponCreate(discount_type="percentage", discount_value=Decimal("120"))
        )
    with pytest.raises(ValidationFailed, match="between 1 and 100"):
        service.create_coupon(
            CouponCreate(discount_type="percentage", discount_value=Decimal("0.5"))
        )
    assert service.create_coupon(
        CouponCreate(code="ONEPCT", discount_type="percentage", discount_value=Decimal("1"))
    ).discount_value == Decimal("1")
    with pytest.raises(ValidationFailed, match="greater than 0"):
        service.create_coupon(CouponCreate(discount_type="fixed", discount_value=Decimal("0")))


def test_generated_code_uses_prefix(db, make_coupon):
    coupon = make_coupon(prefix="spring")
    assert coupon.code.startswith("SPRING")
    assert len(coupon.code) == len("SPRING") + 10


def test_delete_coupon_soft_deletes_used_coupons(db, make_course, make_coupon):
    make_course()
    service = CouponService(db, settings)
    unused = make_coupon(code="UNUSED")
    used = make_coupon(code="USED")
    used_id = used.id
    service.record_coupon_usage(used.id, "user-ada", "agentic-ai-bootcamp", 100, 50, 50)
    db.commit()

    assert service.delete_coupon(unused.id)["deleted"] is True
    assert service.get_coupon_by_code("UNUSED") is None

    result = service.delete_coupon(used_id)
    assert result["deleted"] is False
    kept = service.get_coupon_by_code("USED")
    assert kept.status == "inactive"
    assert kept.deleted_at is not None


def test_available_coupons_for_user(db, make_course, make_coupon):
    make_course()
    make_coupon(code="EVERYONE")
    make_coupon(code="FORADA", target_type="user_specific", target_user_id="user-ada")
    make_coupon(code="FORGRACE", target_type="user_specific", target_user_id="user-grace")
    make_coupon(code="COURSE", target_type="course_specific", course_id="agentic-ai-bootcamp")

    service = CouponService(db, settings)
    codes = {c.code for c in service.get_user_available_coupons("user-ada")}
    assert codes == {"EVERYONE", "FORADA"}

    with_course = {
        c.code for c in service.get_user_available_coupons("user-ada", "agentic-ai-bootcamp")
    }
    assert with_course == {"EVERYONE", "FORADA", "COURSE"}


def test_validate_endpoint(client, make_course, make_coupon, learner_headers):
    make_course()
    make_coupon(code="HALF50")

    response = client.post(
        "/coupons/validate",
        json={"code": "half50", "course_id": "agentic-ai-bootcamp"},
        headers=learner_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["valid"] is True
    assert money(body["discount_amount"]) == Decimal("50.00")
    assert money(body["final_amount"]) == Decimal("50.00")


def test_validate_endpoint_reports_rejection_in_body(client, make_course, learner_headers):
    make_course()

    response = client.post(
        "/coupons/validate",
        json={"code": "MISSING", "course_id": "agentic-ai-bootcamp"},
        headers=learner_headers,
    )

    assert response.status_code == 200
    body = response.json()
    assert body["valid"] is False
    assert body["error"] == "Invalid coupon code"


def test_available_endpoint_hides_usage_history(client, make_course, make_coupon, learner_headers):
    make_course()
    make_coupon(code="EVERYONE")

    response = client.get("/coupons/available", headers=learner_headers)

    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert "usage_history" not in body["coupons"][0]


def test_admin_coupon_lifecycle(client, make_course, admin_headers, outbox):
    make_course()

    created = client.post(
        "/admin/coupons",
        json={
            "code": "welcome10",
            "discount_type": "fixed",
            "discount_value": "10",
            "target_type": "course_specific",
            "course_id": "agentic-ai-bootcamp",
        },
        headers=admin_headers,
    )
    assert created.status_code == 201
    coupon = created.json()
    assert coupon["code"] == "WELCOME10"
    assert coupon["course_title"] == "Agentic AI Bootcamp"

    emailed = client.post(
        f"/admin/coupons/{coupon['id']}/email",
        json={"recipient_email": "grace@example.com", "recipient_name": "Grace"},
        headers=admin_headers,
    )
    assert emailed.status_code == 200
    assert emailed.json()["success"] is True
    assert outbox[-1]["template_params"]["coupon_code"] == "WELCOME10"
    assert outbox[-1]["template_params"]["to_email"] == "grace@example.com"

    listed = client.get("/admin/coupons", headers=admin_headers)
    assert listed.json()["total"] == 1

    deleted = client.delete(f"/admin/coupons/{coupon['id']}", headers=admin_headers)
    assert deleted.status_code == 200
    assert deleted.json()["deleted"] is True

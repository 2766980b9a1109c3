import pytest

from app.core.decorator import ValidationFailed
from app.models.review import make_review_id
from app.schemas.review import ReviewCreate
from app.services.review import ReviewService


def review(client, headers, rating=5, comment="Loved the live sessions", course_id="agentic-ai-bootcamp"):
    return client.put(
        "/reviews/",
        json={"course_id": course_id, "rating": rating, "comment": comment},
        headers=headers,
    )


def test_review_is_upserted_per_user(client, make_course, learner_headers):
    make_course()

    first = review(client, learner_headers, rating=4)
    assert first.status_code == 200
    assert first.json()["id"] == make_review_id("agentic-ai-bootcamp", "user-ada")
    assert first.json()["verified"] is False
    assert first.json()["user_name"] == "Ada Lovelace"

    second = review(client, learner_headers, rating=2, comment="Too fast for me")
    assert second.json()["id"] == first.json()["id"]

    reviews = client.get("/reviews/course/agentic-ai-bootcamp").json()["reviews"]
    assert len(reviews) == 1
    assert (reviews[0]["rating"], reviews[0]["comment"]) == (2, "Too fast for me")


def test_enrolled_reviewer_is_verified(client, make_course, learner_headers, admin_headers):
    make_course()
    client.get("/enrollments/me", headers=learner_headers)
    client.post(
        "/admin/enrollments/manual",
        json={"user_id": "user-ada", "course_id": "agentic-ai-bootcamp", "send_email": False},
        headers=admin_headers,
    )

    assert review(client, learner_headers).json()["verified"] is True


def test_review_stats(client, make_course, learner_headers, other_headers):
    make_course()
    make_course("data-engineering", title="Data Engineering")
    review(client, learner_headers, rating=5)
    review(client, other_headers, rating=4)

    stats = client.get("/courses/agentic-ai-bootcamp/stats").json()
    assert stats == {
        "average_rating": 4.5,
        "review_count": 2,
        "has_reviews": True,
        "course_id": "agentic-ai-bootcamp",
        "enrollment_count": 0,
    }

    many = client.get("/courses/stats", params={"ids": "agentic-ai-bootcamp, data-engineering"}).json()
    assert [s["review_count"] for s in many] == [2, 0]
    assert many[1]["has_reviews"] is False
    assert many[1]["average_rating"] == 0.0


def test_review_validation(client, make_course, learner_headers):
    make_course()

    assert review(client, learner_headers, rating=6).status_code == 422
    assert review(client, learner_headers, comment="   ").status_code == 422
    assert review(client, learner_headers, course_id="missing").status_code == 404


def test_review_needs_an_email(db, make_course, make_user):
    make_course()
    user = make_user("user-anon")

    with pytest.raises(ValidationFailed, match="Unable to determine user email"):
        ReviewService(db).add_or_update_review(
            user, ReviewCreate(course_id="agentic-ai-bootcamp", rating=5, comment="Great")
        )


def test_my_review_and_delete(client, make_course, learner_headers):
    make_course()

    assert client.get("/reviews/course/agentic-ai-bootcamp/me", headers=learner_headers).json() is None

    review(client, learner_headers)
    mine = client.get("/reviews/course/agentic-ai-bootcamp/me", headers=learner_headers)
    assert mine.json()["rating"] == 5

    assert client.delete("/reviews/course/agentic-ai-bootcamp", headers=learner_headers).status_code == 200
    assert client.delete("/reviews/course/agentic-ai-bootcamp", headers=learner_headers).status_code == 404


def test_recent_reviews_and_admin_delete(client, make_course, learner_headers, other_headers, admin_headers):
    make_course()
    review(client, learner_headers)
    review(client, other_headers, rating=3)

    recent = client.get("/reviews/recent", params={"limit": 1}).json()["reviews"]
    assert len(recent) == 1

    review_id = make_review_id("agentic-ai-bootcamp", "user-grace")
    forbidden = client.delete(f"/admin/reviews/{review_id}", headers=learner_headers)
    assert forbidden.status_code == 403

    deleted = client.delete(f"/admin/reviews/{review_id}", headers=admin_headers)
    assert deleted.status_code == 200

    audit = client.get("/admin/audit-logs", params={"resource": "review"}, headers=admin_headers).json()
    assert audit["total"] == 1
    assert audit["logs"][0]["resource_id"] == review_id

from decimal import Decimal

from tests.conftest import money


def test_list_published_courses(client, make_course):
    make_course()
    make_course("data-engineering", title="Data Engineering", category="Data", price="250.00")
    make_course("hidden-course", title="Hidden", is_published=False)

    body = client.get("/courses/").json()

    assert body["total"] == 2
    assert [c["id"] for c in body["courses"]] == ["agentic-ai-bootcamp", "data-engineering"]
    assert money(body["courses"][1]["price"]) == Decimal("250.00")
    assert body["courses"][0]["batches"][0]["batch_number"] == 1

    data_only = client.get("/courses/", params={"category": "Data"}).json()
    assert [c["id"] for c in data_only["courses"]] == ["data-engineering"]

    assert client.get("/courses/categories").json() == ["AI", "Data"]


def test_unknown_and_unpublished_course(client, make_course):
    make_course("hidden-course", title="Hidden", is_published=False)

    missing = client.get("/courses/nope")
    assert missing.status_code == 404
    assert missing.json()["type"] == "not_found"
    assert client.get("/courses/hidden-course").status_code == 404


def test_batches_do_not_expose_class_links(client, make_course):
    make_course(
        batches=[
            {
                "batch_number": 1,
                "status": "active",
                "class_links": {"zoom": "https://zoom.example/j/1"},
            }
        ]
    )

    course = client.get("/courses/agentic-ai-bootcamp").json()
    assert "class_links" not in course["batches"][0]

    batches = client.get("/courses/agentic-ai-bootcamp/batches").json()
    assert "class_links" not in batches[0]


def test_next_batch_when_all_are_completed(client, make_course):
    make_course(batches=[{"batch_number": 1, "status": "completed"}])

    body = client.get("/courses/agentic-ai-bootcamp/batches/next").json()

    assert body == {"batch": None, "reason": "No available batches"}


def test_coming_soon_course_cannot_be_bought(client, make_course, learner_headers, paypal_payment):
    make_course(coming_soon=True)

    response = client.post(
        "/checkout/paypal",
        json={"course_id": "agentic-ai-bootcamp", "payment": paypal_payment()},
        headers=learner_headers,
    )

    assert response.status_code == 400
    assert response.json()["error"] == "This course is not open for enrollment yet"


def test_stats_for_unknown_course(client):
    assert client.get("/courses/nope/stats").status_code == 404

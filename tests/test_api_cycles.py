"""Tests for the scholarship cycle endpoints."""

from datetime import timedelta

import pytest

from scholarships.utils.helpers import utcnow


def cycle_payload(total_slots=2):
    now = utcnow()
    return {
        "program_name": "Future Leaders Scholarship",
        "academic_year": "2024-2025",
        "award_amount": 5000,
        "total_slots": total_slots,
        "application_start": (now - timedelta(days=1)).isoformat(),
        "application_end": (now + timedelta(days=30)).isoformat(),
        "eligibility_criteria": ["Minimum GPA 3.0"],
    }


async def test_health(client):
    response = await client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


async def test_admin_creates_and_opens_cycle(client, admin_headers, student_headers):
    response = await client.post("/api/v1/cycles", json=cycle_payload(3), headers=admin_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["status"] == "DRAFT"
    assert data["total_slots"] == 3
    assert data["remaining_slots"] == 3
    assert data["display_name"] == "Future Leaders Scholarship 2024-2025"

    response = await client.post(f"/api/v1/cycles/{data['id']}/open", headers=admin_headers)
    assert response.status_code == 200
    assert response.json()["status"] == "OPEN"

    response = await client.get("/api/v1/cycles?status=OPEN", headers=student_headers)
    assert response.status_code == 200
    assert [c["id"] for c in response.json()] == [data["id"]]


async def test_students_cannot_manage_cycles(client, student_headers):
    response = await client.post("/api/v1/cycles", json=cycle_payload(), headers=student_headers)

    assert response.status_code == 403


async def test_cycle_validation(client, admin_headers):
    payload = cycle_payload()
    payload["application_end"] = payload["application_start"]
    response = await client.post("/api/v1/cycles", json=payload, headers=admin_headers)
    assert response.status_code == 422

    payload = cycle_payload(total_slots=-1)
    response = await client.post("/api/v1/cycles", json=payload, headers=admin_headers)
    assert response.status_code == 422


async def test_admin_edits_draft_cycle(client, admin_headers, student_headers):
    created = (await client.post("/api/v1/cycles", json=cycle_payload(2), headers=admin_headers)).json()

    response = await client.patch(
        f"/api/v1/cycles/{created['id']}",
        json={"total_slots": 6, "description": "Extended intake"},
        headers=admin_headers,
    )
    assert response.status_code == 200
    data = response.json()
    assert (data["total_slots"], data["remaining_slots"]) == (6, 6)
    assert data["description"] == "Extended intake"
    assert data["program_name"] == "Future Leaders Scholarship"

    forbidden = await client.patch(
        f"/api/v1/cycles/{created['id']}", json={"description": "x"}, headers=student_headers
    )
    assert forbidden.status_code == 403


async def test_cycle_edit_guards(client, admin_headers):
    created = (await client.post("/api/v1/cycles", json=cycle_payload(), headers=admin_headers)).json()
    url = f"/api/v1/cycles/{created['id']}"

    bad_window = await client.patch(
        url, json={"application_end": created["application_start"]}, headers=admin_headers
    )
    assert bad_window.status_code == 400

    negative = await client.patch(url, json={"total_slots": -1}, headers=admin_headers)
    assert negative.status_code == 422

    await client.post(f"{url}/open", headers=admin_headers)
    while_open = await client.patch(url, json={"description": "x"}, headers=admin_headers)
    assert while_open.status_code == 409
    assert while_open.json()["error"] == "invalid_transition"


async def test_illegal_cycle_transition(client, admin_headers):
    created = (await client.post("/api/v1/cycles", json=cycle_payload(), headers=admin_headers)).json()

    response = await client.post(f"/api/v1/cycles/{created['id']}/suspend", headers=admin_headers)

    assert response.status_code == 409
    body = response.json()
    assert body["error"] == "invalid_transition"
    assert body["context"]["current_state"] == "DRAFT"


async def test_unknown_cycle_is_404(client, student_headers):
    response = await client.get(
        "/api/v1/cycles/00000000-0000-0000-0000-000000000000", headers=student_headers
    )

    assert response.status_code == 404
    assert response.json()["error"] == "not_found"


async def test_requests_without_token_are_refused(client):
    response = await client.get("/api/v1/cycles")

    assert response.status_code in (401, 403)


@pytest.mark.parametrize("decide", [True, False])
async def test_close_cycle_runs_batch_decision(client, admin_headers, headers_for, decide):
    cycle = (await client.post("/api/v1/cycles", json=cycle_payload(1), headers=admin_headers)).json()
    await client.post(f"/api/v1/cycles/{cycle['id']}/open", headers=admin_headers)

    scores = {"student-1": 91, "student-2": 77}
    for student_id, score in scores.items():
        created = await client.post(
            "/api/v1/applications",
            json={"cycle_id": cycle["id"], "submit": True, "motivation_letter": "Please"},
            headers=headers_for(student_id),
        )
        assert created.status_code == 201
        for reviewer_id in ("reviewer-1", "reviewer-2"):
            review = await client.post(
                f"/api/v1/applications/{created.json()['id']}/reviews",
                json={"score": score, "recommendation": "APPROVE"},
                headers=headers_for(reviewer_id, "reviewer"),
            )
            assert review.status_code == 201

    ranking = await client.get(f"/api/v1/cycles/{cycle['id']}/ranking", headers=admin_headers)
    assert ranking.status_code == 200
    assert ranking.json()["dry_run"] is True

    response = await client.post(
        f"/api/v1/cycles/{cycle['id']}/close?decide={str(decide).lower()}", headers=admin_headers
    )

    assert response.status_code == 200
    batch = response.json()
    assert len(batch["approved"]) == 1
    assert batch["approved"][0]["mean_score"] == 91.0
    assert len(batch["rejected"]) == 1
    assert batch["dry_run"] is (not decide)

    cycle_after = (await client.get(f"/api/v1/cycles/{cycle['id']}", headers=admin_headers)).json()
    assert cycle_after["status"] == "CLOSED"
    assert cycle_after["remaining_slots"] == (0 if decide else 1)

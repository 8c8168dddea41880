from taskhub.models import User

from .conftest import auth_headers_for


def test_create_task(created_task, gm, officer):
    assert created_task["status"] == "PENDING"
    assert created_task["assigned_by"] == gm.id
    assert created_task["assigned_to_role"] == "FIELD_OFFICER"
    assert [a["action"] for a in created_task["activities"]] == ["CREATED", "ASSIGNED"]


def test_create_task_validation(api_client, gm_headers, officer):
    response = api_client.post("/tasks/", json={"title": "", "description": "d", "assigned_to": officer.id}, headers=gm_headers)
    assert response.status_code == 422


def test_basic_user_cannot_create(api_client, basic_headers, officer):
    response = api_client.post(
        "/tasks/", json={"title": "t", "description": "d", "assigned_to": officer.id}, headers=basic_headers
    )
    assert response.status_code == 403
    assert response.json()["error"] == "PermissionDenied"


def test_missing_token_rejected(api_client):
    response = api_client.get("/tasks/mine")
    assert response.status_code in (401, 403)


def test_bad_token_rejected(api_client):
    response = api_client.get("/tasks/mine", headers={"Authorization": "Bearer not-a-token"})
    assert response.status_code == 401


def test_inactive_user_token_rejected(api_client, db, officer):
    headers = auth_headers_for(officer)
    db.get(User, officer.id).is_active = False
    db.commit()
    assert api_client.get("/tasks/mine", headers=headers).status_code == 401


def test_manager_and_assignee_views(api_client, created_task, gm_headers, officer_headers):
    listing = api_client.get("/tasks/", params={"priority": "urgent", "tags": ["food"]}, headers=gm_headers)
    assert listing.status_code == 200
    body = listing.json()
    assert body["total"] == 1
    assert body["pagination"]["has_next"] is False

    assert api_client.get("/tasks/", headers=officer_headers).status_code == 403

    mine = api_client.get("/tasks/mine", headers=officer_headers).json()
    assert [t["id"] for t in mine["tasks"]] == [created_task["id"]]


def test_query_parameters_are_validated(api_client, gm_headers):
    assert api_client.get("/tasks/", params={"page": 0}, headers=gm_headers).status_code == 422
    assert api_client.get("/tasks/", params={"page_size": 1000}, headers=gm_headers).status_code == 422
    assert api_client.get("/tasks/", params={"sort_by": "colour"}, headers=gm_headers).status_code == 422


def test_full_lifecycle(api_client, created_task, gm_headers, officer_headers):
    task_id = created_task["id"]

    viewed = api_client.get(f"/tasks/{task_id}", headers=officer_headers).json()
    assert viewed["activities"][-1]["action"] == "VIEWED"

    started = api_client.post(f"/tasks/{task_id}/status", json={"status": "IN_PROGRESS"}, headers=officer_headers)
    assert started.status_code == 200

    missing = api_client.post(f"/tasks/{task_id}/submit", json={"response": {"site": "Rafah"}}, headers=officer_headers)
    assert missing.status_code == 422
    assert missing.json()["fields"] == ["families"]

    submitted = api_client.post(
        f"/tasks/{task_id}/submit", json={"response": {"site": "Rafah", "families": 40}}, headers=officer_headers
    )
    assert submitted.json()["status"] == "SUBMITTED"

    cancel = api_client.post(f"/tasks/{task_id}/status", json={"status": "CANCELLED"}, headers=gm_headers)
    assert cancel.status_code == 409
    assert cancel.json()["current"] == "SUBMITTED"

    reviewed = api_client.post(f"/tasks/{task_id}/review", json={"comment": "Looks good"}, headers=gm_headers)
    assert reviewed.json()["activities"][-1]["action"] == "REVIEWED"

    completed = api_client.post(f"/tasks/{task_id}/complete", json={"comment": "Thanks"}, headers=gm_headers)
    assert completed.status_code == 200
    assert completed.json()["status"] == "COMPLETED"

    stats = api_client.get("/tasks/statistics", headers=gm_headers).json()
    assert stats["completed"] == 1


def test_unknown_task_is_404(api_client, gm_headers):
    response = api_client.get("/tasks/9999", headers=gm_headers)
    assert response.status_code == 404
    assert response.json()["error"] == "NotFound"


def test_export_csv(api_client, created_task, gm_headers):
    response = api_client.get("/tasks/export", params={"format": "csv"}, headers=gm_headers)
    assert response.status_code == 200
    assert response.headers["content-type"].startswith("text/csv")
    assert "Report on parcel distribution" in response.text


def test_metrics_count_requests_and_activity(api_client, created_task):
    response = api_client.get("/metrics/")
    assert response.status_code == 200
    assert "http_requests_total" in response.text
    assert 'task_activity_events_total{action="CREATED",role="GENERAL_MANAGER"}' in response.text


def test_analytics_endpoint(api_client, created_task, gm_headers, officer_headers):
    response = api_client.get("/tasks/analytics", headers=gm_headers)
    assert response.status_code == 200
    body = response.json()
    assert body["total"] == 1
    assert body["by_priority"]["urgent"] == 1
    assert body["completion_rate"] == 0
    assert body["average_completion_days"] == 0

    assert api_client.get("/tasks/analytics", headers=officer_headers).json()["my_tasks_only"] == 1


def test_metrics_label_requests_by_route_template(api_client, created_task, gm_headers):
    api_client.get(f"/tasks/{created_task['id']}", headers=gm_headers)
    text = api_client.get("/metrics/").text
    assert 'endpoint="/tasks/{task_id}"' in text
    assert f'endpoint="/tasks/{created_task["id"]}"' not in text

from conftest import bearer, create_goal, issue_key, sign_in


def test_goal_crud_and_record_listing(client):
    headers = sign_in(client)
    goal_id = create_goal(client, headers)

    r = client.post(
        f"/goals/{goal_id}/records",
        json={"date": "2026-10-01", "level": 10, "message": "  first  "},
        headers=headers,
    )
    assert r.status_code == 201
    first_id = r.json()["id"]
    r = client.post(f"/goals/{goal_id}/records", json={"date": "2026-10-02", "level": 12}, headers=headers)
    assert r.status_code == 201

    goals = client.get("/goals", headers=headers).json()
    assert len(goals) == 1
    g = goals[0]
    assert g["name"] == "Pushups"
    assert g["targetDate"] == "2026-12-31"
    assert g["targetLevel"] == 100
    assert [i["date"] for i in g["inputs"]] == ["2026-10-02", "2026-10-01"]
    assert g["inputs"][1]["message"] == "first"

    r = client.put(
        f"/goals/{goal_id}",
        json={"name": "Push-ups", "targetDate": "2027-01-31", "targetLevel": 150, "unit": "reps"},
        headers=headers,
    )
    assert r.status_code == 200
    r = client.put(f"/goals/{goal_id}/records/{first_id}", json={"level": 11, "message": ""}, headers=headers)
    assert r.status_code == 200

    g = client.get("/goals", headers=headers).json()[0]
    assert g["name"] == "Push-ups"
    assert g["inputs"][1] == {"id": first_id, "date": "2026-10-01", "level": 11, "message": None}

    r = client.delete(f"/goals/{goal_id}/records/{first_id}", headers=headers)
    assert r.status_code == 200
    assert len(client.get("/goals", headers=headers).json()[0]["inputs"]) == 1


def test_goal_quota(client):
    headers = sign_in(client)
    for i in range(10):
        create_goal(client, headers, name=f"Goal {i}")

    r = client.post(
        "/goals",
        json={"name": "Goal 10", "targetDate": "2026-12-31", "targetLevel": 1, "unit": "x"},
        headers=headers,
    )
    assert r.status_code == 409
    assert r.json()["code"] == "goal_quota_exceeded"
    assert len(client.get("/goals", headers=headers).json()) == 10


def test_goal_payload_validation(client):
    headers = sign_in(client)
    r = client.post(
        "/goals",
        json={"name": "   ", "targetDate": "2026-12-31", "targetLevel": 1, "unit": "x"},
        headers=headers,
    )
    assert r.status_code == 400
    assert r.json() == {"detail": "invalid payload", "code": "invalid_payload"}

    r = client.post("/goals", json={"name": "Run"}, headers=headers)
    assert r.status_code == 400


def test_deleting_a_goal_deletes_its_records(client):
    headers = sign_in(client)
    key = issue_key(client, headers)
    goal_id = create_goal(client, headers)

    r = client.post(
        "/chatbot/records", json={"goalId": goal_id, "date": "2026-10-01", "level": 5}, headers=bearer(key)
    )
    assert r.status_code == 201
    record_id = r.json()["recordId"]

    r = client.delete(f"/goals/{goal_id}", headers=headers)
    assert r.status_code == 200
    assert client.get("/goals", headers=headers).json() == []

    r = client.put(f"/chatbot/records/{record_id}", json={"level": 6}, headers=bearer(key))
    assert r.status_code == 404
    assert r.json()["code"] == "record_not_found"


def test_goals_are_private_to_their_owner(client):
    alice = sign_in(client, "alice", "Alice")
    bob = sign_in(client, "bob", "Bob")
    goal_id = create_goal(client, alice)

    assert client.get("/goals", headers=bob).json() == []
    r = client.delete(f"/goals/{goal_id}", headers=bob)
    assert r.status_code == 404
    assert r.json()["code"] == "goal_not_found"

    r = client.post(f"/goals/{goal_id}/records", json={"date": "2026-10-01", "level": 1}, headers=bob)
    assert r.status_code == 404

    assert client.get("/goals").status_code == 401

"""
HTTP tests for /workout-sessions.
"""

import pytest

from app.services.workout.session_service import WorkoutSessionService

from factories import assign_routine


def start(client, routine, **extra):
    body = {"routine_id": routine["routine_id"], "day_id": routine["day_id"], **extra}
    return client.post("/workout-sessions/start", json=body)


@pytest.fixture
def started(client, routine):
    response = start(client, routine)
    assert response.status_code == 200
    return response.json()


def first_item_id(session):
    return session["workout_groups"][0]["workout_items"][0]["id"]


class TestStartAndRead:
    def test_start_returns_tree_with_catalog_metadata(self, started, routine):
        assert started["status"] == "ACTIVE"
        assert started["current_pointer"] == {
            "group_index": 0, "exercise_index": 0, "set_index": 0, "round_index": 0,
        }
        group = started["workout_groups"][0]
        assert group["type"] == "SUPERSET_2"
        assert group["rounds_total"] == 3
        bench, row = group["workout_items"]
        assert bench["exercise_name"] == "Bench Press"
        assert bench["exercise_description"] == "How to bench press"
        assert bench["exercise_media_url"] == "https://cdn.example.com/0.png"
        assert row["rep_range"] == "10-12"
        assert [s["set_number"] for s in bench["sets"]] == [1, 2, 3]

    def test_start_with_overrides(self, client, routine):
        response = start(client, routine, overrides={"rest_after_round_seconds": 30})

        assert response.status_code == 200
        assert response.json()["workout_groups"][0]["rest_after_round_seconds"] == 30

    def test_active_is_null_without_session(self, client):
        response = client.get("/workout-sessions/active")

        assert response.status_code == 200
        assert response.json() is None

    def test_active_returns_started_session(self, client, started):
        response = client.get("/workout-sessions/active")

        assert response.json()["id"] == started["id"]

    def test_get_session_by_id(self, client, started):
        response = client.get(f"/workout-sessions/{started['id']}")

        assert response.status_code == 200
        assert response.json()["id"] == started["id"]

    def test_get_other_users_session(self, client, auth, other_user_id, started):
        auth.user_id = other_user_id

        response = client.get(f"/workout-sessions/{started['id']}")

        assert response.status_code == 403

    def test_unknown_routine_uses_error_envelope(self, client, routine):
        response = client.post(
            "/workout-sessions/start",
            json={"routine_id": "00000000-0000-0000-0000-000000000000", "day_id": routine["day_id"]},
        )

        assert response.status_code == 404
        body = response.json()
        assert body["success"] is False
        assert body["error"] == {"status_code": 404, "message": "Routine not found"}
        assert "timestamp" in body

    def test_unassigned_routine_is_forbidden(self, client, auth, other_user_id, routine):
        auth.user_id = other_user_id

        assert start(client, routine).status_code == 403

    def test_assigned_routine_can_be_started(self, client, db, auth, other_user_id, routine):
        assign_routine(db, other_user_id, routine["routine_id"])
        auth.user_id = other_user_id

        response = start(client, routine)

        assert response.status_code == 200
        assert response.json()["user_id"] == other_user_id

    def test_non_uuid_ids_are_rejected(self, client):
        response = client.post("/workout-sessions/start", json={"routine_id": "abc", "day_id": "def"})

        assert response.status_code == 422

    def test_second_start_pauses_first(self, client, routine, started):
        second = start(client, routine).json()

        assert client.get("/workout-sessions/active").json()["id"] == second["id"]
        assert client.get(f"/workout-sessions/{started['id']}").json()["status"] == "PAUSED"


class TestProgress:
    def test_pointer_and_set_update(self, client, started):
        response = client.patch(
            "/workout-sessions/progress",
            json={
                "event_id": "evt-1",
                "current_pointer": {"group_index": 0, "exercise_index": 1, "set_index": 0, "round_index": 0},
                "set_update": {
                    "workout_exercise_item_id": first_item_id(started),
                    "set_number": 1,
                    "weight": 80,
                    "reps": 8,
                    "is_done": True,
                },
            },
        )

        assert response.status_code == 200
        body = response.json()
        assert body["current_pointer"]["exercise_index"] == 1
        first_set = body["workout_groups"][0]["workout_items"][0]["sets"][0]
        assert first_set["is_done"] is True
        assert first_set["weight"] == 80
        assert first_set["completed_at"] is not None

    def test_redelivered_event_returns_same_snapshot(self, client, started):
        body = {
            "event_id": "evt-1",
            "set_update": {"workout_exercise_item_id": first_item_id(started), "set_number": 2, "is_done": True},
        }

        first = client.patch("/workout-sessions/progress", json=body)
        second = client.patch("/workout-sessions/progress", json=body)

        assert first.status_code == second.status_code == 200
        assert first.json() == second.json()

    def test_without_active_session(self, client):
        response = client.patch("/workout-sessions/progress", json={"event_id": "evt-1"})

        assert response.status_code == 404
        assert response.json()["error"]["message"] == "No active session"

    def test_unknown_set(self, client, started):
        response = client.patch(
            "/workout-sessions/progress",
            json={"set_update": {"workout_exercise_item_id": first_item_id(started), "set_number": 9}},
        )

        assert response.status_code == 404

    @pytest.mark.parametrize(
        "set_fields",
        [
            {"set_number": 0},
            {"set_number": 1, "weight": -1},
            {"set_number": 1, "reps": 0},
            {"set_number": 1, "rpe": 11},
            {"set_number": 1, "rpe": 0.5},
        ],
    )
    def test_invalid_set_update(self, client, started, set_fields):
        response = client.patch(
            "/workout-sessions/progress",
            json={"set_update": {"workout_exercise_item_id": first_item_id(started), **set_fields}},
        )

        assert response.status_code == 422

    def test_negative_pointer_is_rejected(self, client, started):
        response = client.patch(
            "/workout-sessions/progress",
            json={"current_pointer": {"group_index": -1, "exercise_index": 0, "set_index": 0, "round_index": 0}},
        )

        assert response.status_code == 422

    def test_overlong_event_id_is_rejected(self, client, started):
        response = client.patch("/workout-sessions/progress", json={"event_id": "x" * 129})

        assert response.status_code == 422


class TestFinishAndResume:
    def test_finish(self, client, started):
        response = client.post("/workout-sessions/finish", json={"session_id": started["id"]})

        assert response.status_code == 200
        assert response.json()["status"] == "FINISHED"
        assert response.json()["ended_at"] is not None
        assert client.get("/workout-sessions/active").json() is None

    def test_finish_twice(self, client, started):
        client.post("/workout-sessions/finish", json={"session_id": started["id"]})

        response = client.post("/workout-sessions/finish", json={"session_id": started["id"]})

        assert response.status_code == 404

    def test_progress_after_finish(self, client, started):
        client.post("/workout-sessions/finish", json={"session_id": started["id"]})

        response = client.patch(
            "/workout-sessions/progress",
            json={"set_update": {"workout_exercise_item_id": first_item_id(started), "set_number": 1, "is_done": True}},
        )

        assert response.status_code == 404

    def test_resume_paused(self, client, routine, started):
        second = start(client, routine).json()

        response = client.post(f"/workout-sessions/{started['id']}/resume")

        assert response.status_code == 200
        assert response.json()["status"] == "ACTIVE"
        assert client.get(f"/workout-sessions/{second['id']}").json()["status"] == "PAUSED"

    def test_resume_finished(self, client, started):
        client.post("/workout-sessions/finish", json={"session_id": started["id"]})

        response = client.post(f"/workout-sessions/{started['id']}/resume")

        assert response.status_code == 422


def test_health(client):
    assert client.get("/health").json() == {"status": "healthy"}


def test_concurrent_start_returns_conflict_envelope(client, routine, started, monkeypatch):
    monkeypatch.setattr(WorkoutSessionService, "pause_active", staticmethod(lambda db, user_id: 0))

    response = start(client, routine)

    assert response.status_code == 409
    body = response.json()
    assert body["success"] is False
    assert body["error"]["status_code"] == 409
    assert client.get("/workout-sessions/active").json()["id"] == started["id"]

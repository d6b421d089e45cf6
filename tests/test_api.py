from unittest.mock import AsyncMock

import pytest
from fastapi import status

import surveyhub.main as main_module

API = "/api/v1"

SURVEY_PAYLOAD = {
    "title": "Team retro",
    "description": "End of sprint",
    "is_active": True,
    "questions": [
        {"text": "Mood", "type": "single_choice", "required": True, "options": ["Good", "Meh", "Bad"]},
        {"text": "Energy", "type": "linear_scale"},
        {"text": "Ideas", "type": "paragraph"},
    ],
}


@pytest.fixture
def created_survey(client, auth_headers):
    response = client.post(f"{API}/surveys", json=SURVEY_PAYLOAD, headers=auth_headers("owner"))
    assert response.status_code == status.HTTP_201_CREATED
    return response.json()


class TestAuthEndpoints:
    def test_register_then_login(self, client):
        response = client.post(f"{API}/auth/register", json={
            "name": "New Person",
            "email": "new@example.com",
            "username": "newbie",
            "password": "long-enough-pw",
            "confirm_password": "long-enough-pw",
        })
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["role"] == "user"

        response = client.post(f"{API}/auth/login", data={"username": "newbie", "password": "long-enough-pw"})
        assert response.status_code == status.HTTP_200_OK
        token = response.json()["access_token"]

        response = client.get(f"{API}/users/me", headers={"Authorization": f"Bearer {token}"})
        assert response.json()["username"] == "newbie"

    def test_duplicate_username(self, client):
        response = client.post(f"{API}/auth/register", json={
            "name": "Copy", "email": "copy@example.com", "username": "owner",
            "password": "long-enough-pw", "confirm_password": "long-enough-pw",
        })
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_login_with_wrong_password(self, client):
        response = client.post(f"{API}/auth/login", data={"username": "owner", "password": "nope"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_login_returns_role(self, client, password):
        response = client.post(f"{API}/auth/login", data={"username": "admin", "password": password})
        assert response.json()["role"] == "admin"

    def test_invalid_token(self, client):
        response = client.get(f"{API}/users/me", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_refresh_issues_working_access_token(self, client, password):
        login = client.post(f"{API}/auth/login", data={"username": "owner", "password": password}).json()
        assert login["refresh_token"]

        response = client.post(f"{API}/auth/refresh", json={"refresh_token": login["refresh_token"]})
        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["role"] == "user"
        assert body["refresh_token"]

        response = client.get(f"{API}/users/me", headers={"Authorization": f"Bearer {body['access_token']}"})
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["username"] == "owner"

    def test_refresh_token_is_not_a_bearer_credential(self, client, password):
        login = client.post(f"{API}/auth/login", data={"username": "owner", "password": password}).json()
        response = client.get(f"{API}/users/me", headers={"Authorization": f"Bearer {login['refresh_token']}"})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_access_token_cannot_refresh(self, client, password):
        login = client.post(f"{API}/auth/login", data={"username": "owner", "password": password}).json()
        response = client.post(f"{API}/auth/refresh", json={"refresh_token": login["access_token"]})
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_update_profile(self, client, auth_headers):
        response = client.put(
            f"{API}/users/me",
            json={"name": "Olive Renamed", "email": "olive@example.com"},
            headers=auth_headers("owner"),
        )
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["name"] == "Olive Renamed"
        assert response.json()["email"] == "olive@example.com"

        response = client.get(f"{API}/users/me", headers=auth_headers("owner"))
        assert response.json()["email"] == "olive@example.com"
        assert response.json()["username"] == "owner"

    def test_update_profile_keeps_omitted_fields(self, client, auth_headers):
        response = client.put(f"{API}/users/me", json={"name": "Only Name"}, headers=auth_headers("owner"))
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["email"] == "owner@example.com"

    def test_update_profile_with_taken_email(self, client, auth_headers):
        response = client.put(
            f"{API}/users/me", json={"email": "stranger@example.com"}, headers=auth_headers("owner")
        )
        assert response.status_code == status.HTTP_400_BAD_REQUEST

        response = client.get(f"{API}/users/me", headers=auth_headers("owner"))
        assert response.json()["email"] == "owner@example.com"


class TestSurveyEndpoints:
    def test_create_returns_full_tree(self, created_survey, principals):
        assert created_survey["creator_id"] == principals["owner"].user_id
        assert [q["order_num"] for q in created_survey["questions"]] == [1, 2, 3]
        assert [o["text"] for o in created_survey["questions"][0]["options"]] == ["Good", "Meh", "Bad"]

    def test_creating_requires_a_token(self, client):
        response = client.post(f"{API}/surveys", json=SURVEY_PAYLOAD)
        assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_invalid_payload(self, client, auth_headers):
        payload = dict(SURVEY_PAYLOAD, questions=[{"text": "Odd", "type": "matrix"}])
        response = client.post(f"{API}/surveys", json=payload, headers=auth_headers("owner"))
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY

    def test_active_survey_is_readable_by_anyone_signed_in(self, client, auth_headers, created_survey):
        response = client.get(f"{API}/surveys/{created_survey['id']}", headers=auth_headers("stranger"))
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["title"] == "Team retro"

    def test_inactive_survey_is_forbidden_to_strangers(self, client, auth_headers, created_survey):
        survey_id = created_survey["id"]
        response = client.patch(f"{API}/surveys/{survey_id}/status", json={"is_active": False},
                                headers=auth_headers("owner"))
        assert response.json()["is_active"] is False

        response = client.get(f"{API}/surveys/{survey_id}", headers=auth_headers("stranger"))
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_missing_survey(self, client, auth_headers):
        response = client.get(f"{API}/surveys/9999", headers=auth_headers("owner"))
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_stranger_cannot_update(self, client, auth_headers, created_survey):
        response = client.put(f"{API}/surveys/{created_survey['id']}", json=SURVEY_PAYLOAD,
                              headers=auth_headers("stranger"))
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_update_synchronizes_questions(self, client, auth_headers, created_survey):
        mood, energy, _ = created_survey["questions"]
        payload = dict(SURVEY_PAYLOAD, title="Team retro (edited)", questions=[
            {"id": energy["id"], "text": "Energy level", "type": "linear_scale"},
            {"id": mood["id"], "text": "Mood", "type": "single_choice", "options": ["Good", "Bad"]},
        ])
        response = client.put(f"{API}/surveys/{created_survey['id']}", json=payload, headers=auth_headers("owner"))

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["title"] == "Team retro (edited)"
        assert [(q["id"], q["order_num"]) for q in body["questions"]] == [(energy["id"], 1), (mood["id"], 2)]
        assert [o["text"] for o in body["questions"][1]["options"]] == ["Good", "Bad"]

    def test_update_with_unknown_question_id(self, client, auth_headers, created_survey):
        payload = dict(SURVEY_PAYLOAD, questions=[{"id": 424242, "text": "Ghost", "type": "text"}])
        response = client.put(f"{API}/surveys/{created_survey['id']}", json=payload, headers=auth_headers("owner"))
        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.json()["detail"].startswith("question #1: ")

    def test_admin_can_update_any_survey(self, client, auth_headers, created_survey, principals):
        response = client.put(f"{API}/surveys/{created_survey['id']}", json=SURVEY_PAYLOAD,
                              headers=auth_headers("admin"))
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["creator_id"] == principals["owner"].user_id

    def test_add_and_delete_question_keeps_order_dense(self, client, auth_headers, created_survey):
        survey_id = created_survey["id"]
        response = client.post(f"{API}/surveys/{survey_id}/questions",
                               json={"text": "Blockers", "type": "checkbox", "options": ["CI", "Reviews"]},
                               headers=auth_headers("owner"))
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["order_num"] == 4

        first_question_id = created_survey["questions"][0]["id"]
        response = client.delete(f"{API}/questions/{first_question_id}", headers=auth_headers("owner"))
        assert response.status_code == status.HTTP_204_NO_CONTENT

        body = client.get(f"{API}/surveys/{survey_id}", headers=auth_headers("owner")).json()
        assert [q["text"] for q in body["questions"]] == ["Energy", "Ideas", "Blockers"]
        assert [q["order_num"] for q in body["questions"]] == [1, 2, 3]

    def test_update_question_in_place(self, client, auth_headers, created_survey):
        survey_id = created_survey["id"]
        mood = created_survey["questions"][0]
        old_option_ids = {o["id"] for o in mood["options"]}

        response = client.put(f"{API}/questions/{mood['id']}",
                              json={"text": "Overall mood", "type": "dropdown", "required": False,
                                    "options": ["Great", "Fine"]},
                              headers=auth_headers("owner"))

        assert response.status_code == status.HTTP_200_OK
        body = response.json()
        assert body["id"] == mood["id"]
        assert body["order_num"] == 1
        assert body["type"] == "dropdown"
        assert body["required"] is False
        assert [o["text"] for o in body["options"]] == ["Great", "Fine"]
        assert not {o["id"] for o in body["options"]} & old_option_ids

        survey = client.get(f"{API}/surveys/{survey_id}", headers=auth_headers("owner")).json()
        assert [q["text"] for q in survey["questions"]] == ["Overall mood", "Energy", "Ideas"]
        assert [q["order_num"] for q in survey["questions"]] == [1, 2, 3]

    def test_admin_can_update_question(self, client, auth_headers, created_survey):
        energy = created_survey["questions"][1]
        response = client.put(f"{API}/questions/{energy['id']}",
                              json={"text": "Energy (1-5)", "type": "linear_scale"},
                              headers=auth_headers("admin"))
        assert response.status_code == status.HTTP_200_OK
        assert response.json()["order_num"] == 2

    def test_stranger_cannot_update_question(self, client, auth_headers, created_survey):
        mood = created_survey["questions"][0]
        response = client.put(f"{API}/questions/{mood['id']}",
                              json={"text": "Hijacked", "type": "text"},
                              headers=auth_headers("stranger"))
        assert response.status_code == status.HTTP_403_FORBIDDEN

        survey = client.get(f"{API}/surveys/{created_survey['id']}", headers=auth_headers("owner")).json()
        assert survey["questions"][0]["text"] == "Mood"

    def test_update_unknown_question(self, client, auth_headers, created_survey):
        response = client.put(f"{API}/questions/424242", json={"text": "Ghost", "type": "text"},
                              headers=auth_headers("owner"))
        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_update_question_with_mismatched_body_id(self, client, auth_headers, created_survey):
        mood, energy, _ = created_survey["questions"]
        response = client.put(f"{API}/questions/{mood['id']}",
                              json={"id": energy["id"], "text": "Mixed up", "type": "text"},
                              headers=auth_headers("owner"))
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_stranger_cannot_delete_question(self, client, auth_headers, created_survey):
        question_id = created_survey["questions"][0]["id"]
        response = client.delete(f"{API}/questions/{question_id}", headers=auth_headers("stranger"))
        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_listing(self, client, auth_headers, created_survey):
        client.post(f"{API}/surveys", json=dict(SURVEY_PAYLOAD, title="Private draft", is_active=False),
                    headers=auth_headers("owner"))

        stranger_titles = [s["title"] for s in client.get(f"{API}/surveys", headers=auth_headers("stranger")).json()]
        admin_titles = [s["title"] for s in client.get(f"{API}/surveys", headers=auth_headers("admin")).json()]
        mine = [s["title"] for s in client.get(f"{API}/surveys/me", headers=auth_headers("owner")).json()]

        assert stranger_titles == ["Team retro"]
        assert sorted(admin_titles) == ["Private draft", "Team retro"]
        assert sorted(mine) == ["Private draft", "Team retro"]

    def test_delete_survey(self, client, auth_headers, created_survey):
        survey_id = created_survey["id"]
        response = client.delete(f"{API}/surveys/{survey_id}", headers=auth_headers("owner"))
        assert response.status_code == status.HTTP_204_NO_CONTENT
        response = client.get(f"{API}/surveys/{survey_id}", headers=auth_headers("owner"))
        assert response.status_code == status.HTTP_404_NOT_FOUND


class TestResponseEndpoints:
    def _submit(self, client, survey, mood, energy, headers=None):
        mood_q, energy_q, _ = survey["questions"]
        return client.post(f"{API}/responses", json={
            "survey_id": survey["id"],
            "answers": [
                {"question_id": mood_q["id"], "value": mood},
                {"question_id": energy_q["id"], "value": energy},
            ],
        }, headers=headers or {})

    def test_anonymous_and_signed_in_submissions(self, client, auth_headers, created_survey):
        response = self._submit(client, created_survey, "Good", 4)
        assert response.status_code == status.HTTP_201_CREATED
        assert response.json()["survey_id"] == created_survey["id"]

        response = self._submit(client, created_survey, "Bad", 2, headers=auth_headers("stranger"))
        assert response.status_code == status.HTTP_201_CREATED

        records = client.get(f"{API}/surveys/{created_survey['id']}/responses",
                             headers=auth_headers("owner")).json()
        assert [r["user_id"] is None for r in records] == [True, False]

    def test_invalid_answer_is_rejected(self, client, created_survey):
        response = self._submit(client, created_survey, "Good", 11)
        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_analytics(self, client, auth_headers, created_survey):
        for mood, energy in [("Good", 5), ("Meh", 3), ("Good", 4), ("Bad", 2), ("Meh", 1)]:
            self._submit(client, created_survey, mood, energy)

        response = client.get(f"{API}/surveys/{created_survey['id']}/analytics", headers=auth_headers("owner"))

        assert response.status_code == status.HTTP_200_OK
        report = response.json()
        assert report["total_responses"] == 5
        mood_entry, energy_entry, ideas_entry = report["question_analytics"]
        assert [(s["option_text"], s["count"], s["percentage"]) for s in mood_entry["options_summary"]] == [
            ("Good", 2, 40.0), ("Meh", 2, 40.0), ("Bad", 1, 20.0),
        ]
        assert energy_entry["average"] == pytest.approx(3.0)
        assert ideas_entry["text_responses"] == []

    def test_analytics_of_empty_survey(self, client, auth_headers, created_survey):
        report = client.get(f"{API}/surveys/{created_survey['id']}/analytics", headers=auth_headers("admin")).json()
        assert report["total_responses"] == 0
        assert all(s["count"] == 0 and s["percentage"] == 0 for s in report["question_analytics"][0]["options_summary"])

    def test_results_need_owner_or_admin(self, client, auth_headers, created_survey):
        survey_id = created_survey["id"]
        for path in ("responses", "analytics", "responses/export"):
            response = client.get(f"{API}/surveys/{survey_id}/{path}", headers=auth_headers("stranger"))
            assert response.status_code == status.HTTP_403_FORBIDDEN
            response = client.get(f"{API}/surveys/{survey_id}/{path}")
            assert response.status_code == status.HTTP_401_UNAUTHORIZED

    def test_csv_export(self, client, auth_headers, created_survey):
        self._submit(client, created_survey, "Meh", 3)
        response = client.get(f"{API}/surveys/{created_survey['id']}/responses/export", headers=auth_headers("owner"))

        assert response.status_code == status.HTTP_200_OK
        assert response.headers["content-type"].startswith("text/csv")
        assert f"survey_{created_survey['id']}_responses_" in response.headers["content-disposition"]
        header, row = response.text.splitlines()
        assert header == "ResponseID,SubmittedAt,UserID,Mood,Energy,Ideas"
        assert row.endswith(",Anonymous,Meh,3,")


class TestAmbient:
    def test_health(self, client):
        body = client.get("/health").json()
        assert body["database"] == "connected"
        assert body["redis"] == "not configured"

    def test_rate_limit(self, client, monkeypatch):
        redis = AsyncMock()
        redis.incr.return_value = 101
        monkeypatch.setattr(main_module, "redis", redis)

        response = client.get("/health")

        assert response.status_code == status.HTTP_429_TOO_MANY_REQUESTS
        redis.expire.assert_not_called()

    def test_first_request_of_window_sets_expiry(self, client, monkeypatch):
        redis = AsyncMock()
        redis.incr.return_value = 1
        monkeypatch.setattr(main_module, "redis", redis)

        client.get(f"{API}/surveys/9999")

        redis.expire.assert_awaited_once()
        assert redis.expire.call_args[0][1] == 60

import pytest


def post(client, difficulty, body, **headers):
    return client.post(f"/leaderboard/{difficulty}", json=body, headers=headers)


def submission(make_game_data, username="alice", difficulty="beginner", time=5.2, moves=12, game_id="g1"):
    return {
        "username": username,
        "time": time,
        "gameData": make_game_data(difficulty, time=time, moves=moves, game_id=game_id),
    }


def assert_error(response, status, code):
    assert response.status_code == status
    payload = response.json()
    assert payload["success"] is False
    assert payload["error"]["code"] == code
    assert payload["error"]["message"]
    assert payload["error"]["requestId"] == response.headers["X-Request-ID"]
    assert payload["error"]["timestamp"].endswith("Z")
    assert "no-store" in response.headers["Cache-Control"]
    return payload


def test_health(client):
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"ok": True}
    assert response.headers["X-Request-ID"]


def test_scenario_a_first_submission_is_stored(client, make_game_data):
    response = post(client, "beginner", submission(make_game_data))
    assert response.status_code == 200
    payload = response.json()
    assert payload["success"] is True
    submitted = payload["meta"]["submitted"]
    assert submitted["username"] == "alice"
    assert submitted["time"] == 5.2
    assert submitted["difficulty"] == "beginner"
    assert submitted["rank"] == 1
    assert submitted["improved"] is True
    assert "currentBest" not in submitted
    assert payload["meta"]["rateLimit"]["remaining"] == 14

    board = client.get("/leaderboard/beginner").json()
    assert board["success"] is True
    assert board["meta"]["count"] == 1
    assert board["meta"]["difficulty"] == "beginner"
    entry = board["data"][0]
    assert entry["username"] == "alice"
    assert entry["time"] == 5.2
    assert entry["gameId"] == "g1"
    assert entry["verified"] is True


def test_scenario_b_worse_time_not_improved(client, make_game_data, clock):
    post(client, "beginner", submission(make_game_data))
    clock.advance(301)
    response = post(client, "beginner", submission(make_game_data, time=6.0, game_id="g2"))
    assert response.status_code == 200
    submitted = response.json()["meta"]["submitted"]
    assert submitted["improved"] is False
    assert submitted["currentBest"] == 5.2

    board = client.get("/leaderboard/beginner").json()
    assert [entry["time"] for entry in board["data"]] == [5.2]


def test_scenario_c_expert_time_below_world_record(client, make_game_data):
    response = post(client, "expert", submission(make_game_data, difficulty="expert", time=0.1, moves=30))
    assert_error(response, 400, "UNREASONABLE_SCORE")


def test_scenario_d_twenty_first_post_is_rate_limited(client, make_game_data):
    responses = [
        post(
            client,
            "beginner",
            submission(make_game_data, username=f"player{index}", game_id=f"g{index}"),
            **{"User-Agent": f"agent-{index}"},
        )
        for index in range(21)
    ]
    assert all(response.status_code != 429 for response in responses[:20])
    assert_error(responses[20], 429, "RATE_LIMIT_EXCEEDED")


def test_fingerprint_ceiling_applies_to_reads(client):
    statuses = [client.get("/leaderboard/beginner").status_code for _ in range(16)]
    assert statuses[:15] == [200] * 15
    assert statuses[15] == 429


def test_clients_are_keyed_by_forwarded_ip(client):
    for _ in range(15):
        client.get("/leaderboard/beginner", headers={"CF-Connecting-IP": "198.51.100.1"})
    response = client.get("/leaderboard/beginner", headers={"CF-Connecting-IP": "198.51.100.2"})
    assert response.status_code == 200


def test_duplicate_game_rejected(client, make_game_data, clock):
    assert post(client, "beginner", submission(make_game_data)).status_code == 200
    clock.advance(301)
    assert_error(post(client, "beginner", submission(make_game_data, time=4.9)), 400, "DUPLICATE_GAME")


def test_improvement_replaces_record(client, make_game_data, clock):
    post(client, "beginner", submission(make_game_data, time=8.5))
    clock.advance(301)
    response = post(client, "beginner", submission(make_game_data, time=7.25, game_id="g2"))
    assert response.json()["meta"]["submitted"]["improved"] is True
    assert [entry["time"] for entry in response.json()["data"]] == [7.25]


def test_expert_claim_with_beginner_board_rejected(client, make_game_data):
    body = submission(make_game_data, difficulty="expert", time=95.5, moves=200)
    body["gameData"]["boardSize"] = {"width": 9, "height": 9}
    assert_error(post(client, "expert", body), 400, "UNREASONABLE_SCORE")


@pytest.mark.parametrize(
    "mutate, code",
    [
        (lambda body: body.update(username="<script>"), "INVALID_USERNAME"),
        (lambda body: body.update(time="fast"), "INVALID_TIME"),
        (lambda body: body.pop("gameData"), "MISSING_GAME_DATA"),
        (lambda body: body["gameData"].pop("moves"), "INVALID_GAME_DATA"),
    ],
)
def test_input_errors(client, make_game_data, mutate, code):
    body = submission(make_game_data)
    mutate(body)
    payload = assert_error(post(client, "beginner", body), 400, code)
    assert "<script>" not in payload["error"]["message"]


def test_username_checked_before_time(client, make_game_data):
    body = submission(make_game_data)
    body.update(username="", time="fast")
    assert_error(post(client, "beginner", body), 400, "INVALID_USERNAME")


def test_unknown_difficulty(client, make_game_data):
    assert_error(client.get("/leaderboard/nightmare"), 400, "INVALID_DIFFICULTY")
    assert_error(post(client, "nightmare", submission(make_game_data)), 400, "INVALID_DIFFICULTY")


def test_body_must_be_object(client):
    response = client.post("/leaderboard/beginner", json=["not", "an", "object"])
    assert_error(response, 400, "INVALID_INPUT")


def test_not_found_and_method_not_allowed(client):
    assert_error(client.get("/nowhere"), 404, "NOT_FOUND")
    assert_error(client.put("/leaderboard/beginner", json={}), 405, "METHOD_NOT_ALLOWED")


def test_burst_of_submissions_is_throttled(client, make_game_data):
    statuses = []
    for index, time in enumerate([9.0, 9.1, 9.2, 9.3]):
        body = submission(make_game_data, time=time, game_id=f"burst{index}")
        statuses.append(post(client, "beginner", body).status_code)
    assert statuses == [200] * 4
    assert_error(
        post(client, "beginner", submission(make_game_data, time=9.9, game_id="burst9")),
        429,
        "SUSPICIOUS_BEHAVIOR",
    )


def test_conditional_get_returns_304(client, make_game_data):
    post(client, "beginner", submission(make_game_data))
    first = client.get("/leaderboard/beginner")
    etag = first.headers["ETag"]
    assert first.headers["Cache-Control"] == "public, max-age=30"

    cached = client.get("/leaderboard/beginner", headers={"If-None-Match": etag})
    assert cached.status_code == 304
    assert cached.content == b""

    stale = client.get("/leaderboard/beginner", headers={"If-None-Match": '"0000000000000000"'})
    assert stale.status_code == 200


def test_etag_changes_after_new_record(client, make_game_data):
    before = client.get("/leaderboard/beginner").headers["ETag"]
    post(client, "beginner", submission(make_game_data))
    after = client.get("/leaderboard/beginner").headers["ETag"]
    assert before != after


def test_rank_is_null_outside_top_page(client, make_game_data, app):
    app.state.services.page_size = 1
    post(client, "beginner", submission(make_game_data, username="fast", time=4.5, game_id="a"))
    response = post(client, "beginner", submission(make_game_data, username="slow", time=8.5, game_id="b"))
    assert response.json()["meta"]["submitted"]["rank"] is None


def test_storage_health_and_clear_cache(client, make_game_data):
    post(client, "beginner", submission(make_game_data))
    client.get("/leaderboard/beginner")

    health = client.get("/health/storage").json()
    assert health["success"] is True
    assert health["storage"]["tables"]["leaderboard_records"] == 1
    assert health["storage"]["tables"]["claimed_games"] == 1
    assert health["cache"]["size"] == 1

    cleared = client.post("/clear-cache").json()
    assert cleared == {"success": True, "cleared": 1}
    assert client.get("/health/storage").json()["cache"]["size"] == 0


def test_services_reset_clears_cache(client, make_game_data, app):
    post(client, "beginner", submission(make_game_data))
    services = app.state.services
    assert len(services.cache) == 1
    services.reset()
    assert len(services.cache) == 0


def test_submitted_time_must_match_game(client, make_game_data):
    body = submission(make_game_data, username="mallory", time=100.0, moves=60)
    body["time"] = 5.2
    assert_error(post(client, "beginner", body), 400, "UNREASONABLE_SCORE")
    assert client.get("/leaderboard/beginner").json()["data"] == []


@pytest.mark.parametrize("game_data", [{}, []])
def test_empty_game_data_is_invalid_not_missing(client, make_game_data, game_data):
    body = submission(make_game_data)
    body["gameData"] = game_data
    assert_error(post(client, "beginner", body), 400, "INVALID_GAME_DATA")


def test_null_game_data_is_missing(client, make_game_data):
    body = submission(make_game_data)
    body["gameData"] = None
    assert_error(post(client, "beginner", body), 400, "MISSING_GAME_DATA")

from remix_engines.video_variants.tests.helpers import DEFAULT_HEADERS, make_client


def _clips(count=3):
    return [{"id": f"c{i}", "duration_seconds": 5.0 + i, "source": f"/media/c{i}.mp4"} for i in range(count)]


def test_plan_endpoint_returns_batch():
    client = make_client()
    resp = client.post(
        "/video/variants/plan",
        json={"clips": _clips(), "config": {"order_mixing": True, "output_count": 4, "seed": 3}},
    )

    assert resp.status_code == 200
    body = resp.json()
    assert len(body["outputs"]) == 4
    assert body["meta"]["seed"] == 3
    assert body["state"]["start_bucket"] == 1
    first = body["outputs"][0]
    assert first["compiled_graph_text"].count("concat=") == 1
    assert first["inputs"] == [f"/media/{cid}.mp4" for cid in first["clip_order"]]


def test_voiceover_with_speed_mixing_is_rejected():
    client = make_client()
    resp = client.post(
        "/video/variants/plan",
        json={"clips": _clips(), "config": {"audio_mode": "voiceover", "speed_mixing": True}},
    )

    assert resp.status_code == 400
    error = resp.json()["detail"]["error"]
    assert error["code"] == "video_variants.configuration_invalid"
    assert error["resource_kind"] == "video_variants"
    assert "request_id" in error["details"]


def test_empty_group_is_unprocessable_and_names_the_group():
    client = make_client()
    resp = client.post(
        "/video/variants/plan",
        json={
            "clips": [
                {"id": "h0", "duration_seconds": 4.0, "group_id": "hook"},
                {"id": "b0", "duration_seconds": 4.0, "group_id": "body"},
            ],
            "groups": [
                {"id": "hook", "name": "Hook", "order": 0},
                {"id": "body", "name": "Body", "order": 1},
                {"id": "cta", "name": "Call to action", "order": 2},
            ],
            "config": {"group_mixing": True, "output_count": 2},
        },
    )

    assert resp.status_code == 422
    error = resp.json()["detail"]["error"]
    assert error["code"] == "video_variants.insufficient_input"
    assert error["details"]["group_id"] == "cta"
    assert "Call to action" in error["message"]


def test_exhausted_random_groups_with_fail_policy_conflicts():
    client = make_client()
    resp = client.post(
        "/video/variants/plan",
        json={
            "clips": [{"id": "only", "duration_seconds": 4.0, "group_id": "g"}],
            "groups": [{"id": "g", "order": 0}],
            "config": {
                "group_mixing": True,
                "group_mixing_mode": "random",
                "duplicate_policy": "fail",
                "group_retry_budget": 3,
                "output_count": 2,
            },
        },
    )

    assert resp.status_code == 409
    assert resp.json()["detail"]["error"]["code"] == "video_variants.variant_space_exhausted"


def test_request_id_header_is_echoed_in_error_details():
    client = make_client({**DEFAULT_HEADERS, "X-Request-Id": "req-123"})
    resp = client.post("/video/variants/plan", json={"clips": [], "config": {}})

    assert resp.status_code == 422
    assert resp.json()["detail"]["error"]["details"]["request_id"] == "req-123"


def test_missing_mode_header_is_rejected():
    client = make_client({"X-Tenant-Id": "t_test"})
    resp = client.post("/video/variants/plan", json={"clips": _clips(), "config": {}})

    assert resp.status_code == 400
    assert "X-Mode" in resp.json()["detail"]


def test_invalid_payload_is_a_validation_error():
    client = make_client()
    resp = client.post(
        "/video/variants/plan",
        json={"clips": [{"id": "c0", "duration_seconds": -1}], "config": {}},
    )
    assert resp.status_code == 422


def test_estimate_endpoint():
    client = make_client()
    resp = client.post(
        "/video/variants/estimate",
        json={
            "clips": _clips(4),
            "config": {"order_mixing": True, "speed_mixing": True, "allowed_speeds": [1.0, 2.0], "output_count": 50},
        },
    )

    assert resp.status_code == 200
    assert resp.json() == {"clip_count": 4, "output_count": 50, "variant_space": 384, "exhaustive": False}


def test_health_and_ready():
    client = make_client()
    assert client.get("/health").json()["status"] == "ok"
    ready = client.get("/ready").json()
    assert ready["details"]["compile_workers"] == 2


def test_infinite_speed_in_json_body_is_rejected():
    client = make_client()
    body = (
        '{"clips": [{"id": "c0", "duration_seconds": 4.0}, {"id": "c1", "duration_seconds": 5.0}],'
        ' "config": {"speed_mixing": true, "allowed_speeds": [Infinity, 1.0]}}'
    )
    resp = client.post("/video/variants/plan", content=body, headers={"Content-Type": "application/json"})

    assert resp.status_code == 400
    assert resp.json()["detail"]["error"]["code"] == "video_variants.configuration_invalid"

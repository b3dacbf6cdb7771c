from __future__ import annotations


def test_counter_calls_use_the_users_token(client, authorize, fake_mp, user_factory):
    fake_mp.on("GET", "/tables/Metrics", [{"Metric_ID": 1, "Metric_Title": "Adults"}])
    authorize(user_factory(["All Staff"], access_token="user-token", expires_at=None))

    assert client.get("/counter/metrics").json() == [{"Metric_ID": 1, "Metric_Title": "Adults"}]
    assert fake_mp.requests[-1].headers["Authorization"] == "Bearer user-token"
    assert fake_mp.token_requests == []


def test_expired_user_token_falls_back_to_service_client(client, authorize, fake_mp, user_factory):
    fake_mp.on("GET", "/tables/Metrics", [])
    authorize(user_factory(["All Staff"], access_token="user-token", expires_at=1.0))

    client.get("/counter/metrics")

    assert fake_mp.requests[-1].headers["Authorization"] == "Bearer service-token"


def test_events_filter_by_day_and_congregation(client, authorize, fake_mp, staff_user):
    fake_mp.on("GET", "/tables/Events", [])
    authorize(staff_user)

    response = client.get("/counter/events", params={"date": "2025-03-02", "congregation_id": 4})

    assert response.status_code == 200
    sent = fake_mp.calls("GET", "/tables/Events")[0].url.params["$filter"]
    assert "CAST(Events.Event_Start_Date AS DATE) = '2025-03-02'" in sent
    assert "Events.Congregation_ID = 4" in sent
    assert "Events.Event_Type_ID IN (28, 29)" in sent


def test_create_event_metric_adds_domain(client, authorize, fake_mp, staff_user):
    fake_mp.on("POST", "/tables/Event_Metrics", [{"Event_Metric_ID": 50}])
    authorize(staff_user)

    response = client.post("/counter/event-metrics", json={"event_id": 3, "metric_id": 2, "numerical_value": 140})

    assert response.status_code == 201
    assert response.json() == {"Event_Metric_ID": 50}
    assert fake_mp.last_json("POST", "/tables/Event_Metrics") == {
        "records": [{"Event_ID": 3, "Metric_ID": 2, "Numerical_Value": 140.0, "Group_ID": None, "Domain_ID": 1}]
    }


def test_negative_count_is_rejected(client, authorize, staff_user):
    authorize(staff_user)
    response = client.post("/counter/event-metrics", json={"event_id": 3, "metric_id": 2, "numerical_value": -1})
    assert response.status_code == 422


def test_update_and_delete_event_metric(client, authorize, fake_mp, staff_user):
    fake_mp.on("PUT", "/tables/Event_Metrics", [])
    fake_mp.on("DELETE", "/tables/Event_Metrics", [])
    authorize(staff_user)

    updated = client.put("/counter/event-metrics/50", json={"numerical_value": 12})
    assert updated.json() == {"Event_Metric_ID": 50, "Numerical_Value": 12.0}
    assert fake_mp.last_json("PUT", "/tables/Event_Metrics")["records"][0] == {
        "Numerical_Value": 12.0,
        "Event_Metric_ID": 50,
        "Domain_ID": 1,
    }

    assert client.delete("/counter/event-metrics/50").status_code == 204
    assert fake_mp.calls("DELETE", "/tables/Event_Metrics")[0].url.params.get_list("id") == ["50"]


def test_vendor_errors_become_bad_gateway(client, authorize, fake_mp, staff_user):
    authorize(staff_user)

    response = client.get("/counter/event-metrics/3")

    assert response.status_code == 502
    body = response.json()
    assert body["code"] == "ministry_platform_error"
    assert body["upstream_status"] == 404

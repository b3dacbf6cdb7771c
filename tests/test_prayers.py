from __future__ import annotations

from datetime import date

from mpapps.services.prayers import compute_prayer_stats, get_widget_data


def test_prayer_stats_streak_counts_consecutive_days():
    stats = compute_prayer_stats(
        [
            "2024-03-10T08:00:00Z",
            "2024-03-10T21:00:00",
            "2024-03-09T12:00:00",
            "2024-03-07T12:00:00",
            None,
            "not a date",
        ],
        today=date(2024, 3, 10),
    )
    assert stats == {"total_prayers": 4, "day_streak": 2, "today_count": 2}


def test_prayer_stats_streak_is_zero_without_prayer_today():
    stats = compute_prayer_stats(["2024-03-09T12:00:00"], today=date(2024, 3, 10))
    assert stats["day_streak"] == 0
    assert stats["total_prayers"] == 1


def test_list_prayers_adds_counts(client, authorize, fake_mp, member_user):
    fake_mp.on(
        "GET",
        "/tables/Feedback_Entries",
        [{"Feedback_Entry_ID": 1, "Entry_Title": "A"}, {"Feedback_Entry_ID": 2, "Entry_Title": "B"}],
    )
    fake_mp.on(
        "GET",
        "/tables/Feedback_Entry_User_Responses",
        [{"Feedback_Entry_ID": 2}, {"Feedback_Entry_ID": 2}],
    )
    authorize(member_user)

    body = client.get("/prayers").json()

    assert [(p["Feedback_Entry_ID"], p["Prayer_Count"]) for p in body] == [(1, 0), (2, 2)]
    sent_filter = fake_mp.calls("GET", "/tables/Feedback_Entries")[0].url.params["$filter"]
    assert sent_filter == "Approved = 1 OR Contact_ID = 2002"


def test_anonymous_callers_see_approved_prayers(client, fake_mp):
    fake_mp.on("GET", "/tables/Feedback_Entries", [{"Feedback_Entry_ID": 5, "Entry_Title": "Healing"}])
    fake_mp.on("GET", "/tables/Feedback_Entry_User_Responses", [])

    response = client.get("/prayers")

    assert response.status_code == 200
    assert response.json() == [{"Feedback_Entry_ID": 5, "Entry_Title": "Healing", "Prayer_Count": 0}]
    assert fake_mp.calls("GET", "/tables/Feedback_Entries")[0].url.params["$filter"] == "Approved = 1"


def test_invalid_bearer_token_lists_as_anonymous(client, fake_mp):
    fake_mp.on("GET", "/tables/Feedback_Entries", [])

    response = client.get("/prayers", headers={"Authorization": "Bearer not-a-session"})

    assert response.status_code == 200
    assert fake_mp.calls("GET", "/tables/Feedback_Entries")[0].url.params["$filter"] == "Approved = 1"


def test_create_prayer_is_unapproved(client, authorize, fake_mp, member_user):
    fake_mp.on("POST", "/tables/Feedback_Entries", lambda request: [{"Feedback_Entry_ID": 10}])
    authorize(member_user)

    response = client.post("/prayers", json={"description": "  Please pray for my family  "})

    assert response.status_code == 201
    (record,) = fake_mp.last_json("POST", "/tables/Feedback_Entries")["records"]
    assert record["Approved"] is False
    assert record["Contact_ID"] == 2002
    assert record["Description"] == "Please pray for my family"
    assert record["Entry_Title"] == "Prayer Request"


def test_create_prayer_requires_description(client, authorize, member_user):
    authorize(member_user)
    assert client.post("/prayers", json={"description": "   "}).status_code == 422


def test_create_prayer_requires_contact(client, authorize, user_factory):
    authorize(user_factory([], contact_id=None))
    response = client.post("/prayers", json={"description": "Hope"})
    assert response.status_code == 400


def test_pray_for_records_response_and_count(client, authorize, fake_mp, member_user):
    fake_mp.on("GET", "/tables/Feedback_Entries/4", [{"Feedback_Entry_ID": 4, "Approved": True}])
    fake_mp.on("POST", "/tables/Feedback_Entry_User_Responses", [{"Feedback_Entry_User_Response_ID": 88}])
    fake_mp.on("GET", "/tables/Feedback_Entry_User_Responses", [{"Feedback_Entry_User_Response_ID": 88}])
    authorize(member_user)

    response = client.post("/prayers/4/pray", json={"message": "Praying"})

    assert response.status_code == 201
    assert response.json() == {"response": {"Feedback_Entry_User_Response_ID": 88}, "prayer_count": 1}
    (record,) = fake_mp.last_json("POST", "/tables/Feedback_Entry_User_Responses")["records"]
    assert record["Response_Type_ID"] == 1
    assert record["Response_Text"] == "Praying"


def test_pray_for_missing_prayer(client, authorize, fake_mp, member_user):
    fake_mp.on("GET", "/tables/Feedback_Entries/4", [])
    authorize(member_user)
    assert client.post("/prayers/4/pray").status_code == 404


def test_approve_requires_prayer_staff(client, authorize, member_user):
    authorize(member_user)
    response = client.post("/prayers/4/approve")
    assert response.status_code == 403
    assert response.json()["detail"] == "Only staff members can approve prayers"


def test_approve_updates_record(client, authorize, fake_mp, user_factory):
    fake_mp.on("GET", "/tables/Feedback_Entries/4", [{"Feedback_Entry_ID": 4, "Approved": False}])
    fake_mp.on("PUT", "/tables/Feedback_Entries", [{"Feedback_Entry_ID": 4, "Approved": True}])
    authorize(user_factory(["Staff"]))

    response = client.post("/prayers/4/approve")

    assert response.status_code == 200
    assert fake_mp.last_json("PUT", "/tables/Feedback_Entries") == {
        "records": [{"Feedback_Entry_ID": 4, "Approved": True}]
    }
    assert fake_mp.calls("PUT", "/tables/Feedback_Entries")[0].url.params["$userId"] == "42"


def test_search_with_blank_query_skips_vendor(client, authorize, fake_mp, member_user):
    authorize(member_user)
    assert client.get("/prayers/search", params={"q": "  "}).json() == []
    assert fake_mp.requests == []


def test_widget_data_falls_back_on_vendor_error(fake_mp, mp):
    data = get_widget_data(mp, 2002)
    assert data == {
        "My_Requests": {"Items": []},
        "Community_Needs": {"Items": []},
        "Prayer_Partners": {"Items": []},
        "User_Stats": None,
    }


def test_widget_data_merges_procedure_result(fake_mp, mp):
    fake_mp.on(
        "POST",
        "/procs/api_Custom_Prayer_Widget_Data_JSON",
        [[{"JsonResult": '{"User_Stats": {"Prayers": 3}, "My_Requests": "{\\"Items\\": [1]}"}'}]],
    )

    data = get_widget_data(mp, 2002)

    assert data["User_Stats"] == {"Prayers": 3}
    assert data["My_Requests"] == {"Items": [1]}
    assert data["Community_Needs"] == {"Items": []}

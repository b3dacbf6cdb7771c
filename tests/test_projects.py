from __future__ import annotations

import pytest

EXPENSE_BODY = {
    "project_budget_id": 3,
    "expense_title": "Tents",
    "paid_to": "Camping World",
    "expense_date": "2026-03-01",
    "expense_amount": 240.5,
}


def test_budget_routes_require_budget_role(client, authorize, member_user, budgets_app):
    authorize(member_user)
    assert client.get("/projects/budgets").status_code == 403
    assert client.get("/projects").status_code == 403


def test_budget_role_without_app_permission_is_forbidden(client, authorize, make_application, staff_user):
    make_application("budgets", [{"role_name": "Budgets - View", "can_view": True}])
    authorize(staff_user)

    assert client.get("/projects/budgets").status_code == 403
    assert client.get("/projects").status_code == 403


def test_app_permission_without_budget_role_is_forbidden(client, authorize, make_application, user_factory):
    make_application("budgets", [{"role_name": "Finance Team", "can_view": True, "can_edit": True}])
    authorize(user_factory(["Finance Team"]))

    assert client.get("/projects/budgets").status_code == 403


def test_missing_budgets_application_denies_access(client, authorize, fake_mp, user_factory, admin_user):
    fake_mp.on("POST", "/procs/api_Custom_GetProjectBudgets_JSON", [[{"JsonResult": "[]"}]])
    authorize(user_factory(["Budgets - Admin"]))
    assert client.get("/projects/budgets").status_code == 403

    authorize(admin_user)
    assert client.get("/projects/budgets").status_code == 403


def test_view_app_permission_cannot_edit(client, authorize, make_application, staff_user):
    make_application("budgets", [{"role_name": "All Staff", "can_view": True}])
    authorize(staff_user)

    assert client.post("/projects/1/expenses", json=EXPENSE_BODY).status_code == 403


def test_budgets_lookup_by_id_or_slug(client, authorize, fake_mp, user_factory, budgets_app):
    fake_mp.on("POST", "/procs/api_Custom_GetProjectBudgets_JSON", [[{"JsonResult": '[{"Project_ID": 4}]'}]])
    authorize(user_factory(["Budgets - View"]))

    assert client.get("/projects/budgets", params={"project": "4"}).json() == [{"Project_ID": 4}]
    assert fake_mp.last_json("POST", "/procs/api_Custom_GetProjectBudgets_JSON") == {"@ProjectID": 4}

    client.get("/projects/budgets", params={"project": "summer-camp"})
    assert fake_mp.last_json("POST", "/procs/api_Custom_GetProjectBudgets_JSON") == {"@Slug": "summer-camp"}


def test_budget_details_not_found(client, authorize, fake_mp, user_factory, budgets_app):
    fake_mp.on("GET", "/procs/api_Custom_GetProjectBudgetDetails_JSON", [[]])
    authorize(user_factory(["Budgets - View"]))
    assert client.get("/projects/budgets/unknown").status_code == 404


def test_nested_projects_decode_json_columns(client, authorize, fake_mp, user_factory, budgets_app):
    fake_mp.on(
        "POST",
        "/procs/api_Custom_Projects_JSON",
        [[{"JsonResult": '[{"Project_ID": 1, "Budgets": "[{\\"Amount\\": 5}]", "Coordinator": null}]'}]],
    )
    authorize(user_factory(["Budgets - Edit"], email="coord@example.org"))

    (project,) = client.get("/projects", params={"nested": True}).json()

    assert project["Budgets"] == [{"Amount": 5}]
    assert project["Expenses"] == []
    assert project["Coordinator"] is None
    sent = fake_mp.last_json("POST", "/procs/api_Custom_Projects_JSON")
    assert sent["@UserName"] == "coord@example.org"


def test_view_role_cannot_create_expense(client, authorize, user_factory, budgets_app):
    authorize(user_factory(["Budgets - View"]))
    assert client.post("/projects/1/expenses", json=EXPENSE_BODY).status_code == 403


def test_create_expense_attaches_project_and_requester(client, authorize, fake_mp, staff_user, budgets_app):
    fake_mp.on("GET", "/tables/Projects", [{"Project_ID": 1}])
    fake_mp.on("POST", "/tables/Project_Expenses", [{"Project_Expense_ID": 9}])
    authorize(staff_user)

    response = client.post("/projects/1/expenses", json=EXPENSE_BODY)

    assert response.status_code == 201
    (record,) = fake_mp.last_json("POST", "/tables/Project_Expenses")["records"]
    assert record["Project_ID"] == 1
    assert record["Project_Budget_ID"] == 3
    assert record["Requested_By"] == 42
    assert record["Expense_Date"] == "2026-03-01"
    assert record["Expense_Amount"] == 240.5


@pytest.mark.parametrize(
    "body",
    [
        {},
        {**EXPENSE_BODY, "expense_amount": 0},
        {**EXPENSE_BODY, "paid_to": ""},
        {key: value for key, value in EXPENSE_BODY.items() if key != "expense_date"},
    ],
)
def test_invalid_expense_is_unprocessable(client, authorize, staff_user, budgets_app, body):
    authorize(staff_user)
    assert client.post("/projects/1/expenses", json=body).status_code == 422


def test_create_project_maps_fields(client, authorize, fake_mp, staff_user, budgets_app):
    fake_mp.on("POST", "/tables/Projects", [{"Project_ID": 7}])
    authorize(staff_user)

    response = client.post(
        "/projects",
        json={
            "project_title": "  Summer Camp ",
            "project_coordinator": 1001,
            "project_start": "2026-06-01T09:00:00",
            "project_end": "2026-06-05T17:00:00",
        },
    )

    assert response.status_code == 201
    assert response.json() == {"Project_ID": 7}
    (record,) = fake_mp.last_json("POST", "/tables/Projects")["records"]
    assert record["Project_Title"] == "Summer Camp"
    assert record["Project_Start"] == "2026-06-01T09:00:00"
    assert record["Project_Approved"] is False


def test_project_end_before_start_is_rejected(client, authorize, staff_user, budgets_app):
    authorize(staff_user)
    response = client.post(
        "/projects",
        json={
            "project_title": "Retreat",
            "project_coordinator": 1001,
            "project_start": "2026-06-05T09:00:00",
            "project_end": "2026-06-01T09:00:00",
        },
    )
    assert response.status_code == 422


def test_empty_project_body_is_rejected(client, authorize, fake_mp, staff_user, budgets_app):
    fake_mp.on("GET", "/tables/Projects", [{"Project_ID": 1}])
    authorize(staff_user)

    assert client.post("/projects", json={}).status_code == 422
    assert client.put("/projects/1", json={}).status_code == 400


def test_update_project_sends_only_changed_fields(client, authorize, fake_mp, staff_user, budgets_app):
    fake_mp.on("GET", "/tables/Projects", [{"Project_ID": 1}])
    fake_mp.on("PUT", "/tables/Projects", [{"Project_ID": 1, "Project_Approved": True}])
    authorize(staff_user)

    response = client.put("/projects/1", json={"project_approved": True})

    assert response.json() == {"Project_ID": 1, "Project_Approved": True}
    assert fake_mp.last_json("PUT", "/tables/Projects") == {
        "records": [{"Project_Approved": True, "Project_ID": 1}]
    }


def test_create_budget_validates_body(client, authorize, fake_mp, staff_user, budgets_app):
    fake_mp.on("GET", "/tables/Projects", [{"Project_ID": 1}])
    fake_mp.on("POST", "/tables/Project_Budgets", [{"Project_Budget_ID": 5}])
    authorize(staff_user)

    assert client.post("/projects/1/budgets", json={"budget_name": "Food"}).status_code == 422

    response = client.post(
        "/projects/1/budgets",
        json={"project_category_type_id": 2, "budget_name": "Food", "budget_amount": 500},
    )
    assert response.status_code == 201
    assert fake_mp.last_json("POST", "/tables/Project_Budgets") == {
        "records": [
            {"Project_Category_Type_ID": 2, "Budget_Name": "Food", "Budget_Amount": 500.0, "Project_ID": 1}
        ]
    }


def test_upcoming_events_escapes_search(client, authorize, fake_mp, staff_user, budgets_app):
    fake_mp.on("GET", "/tables/Events", [])
    authorize(staff_user)

    client.get("/projects/upcoming-events", params={"search": "Men's Retreat"})

    sent = fake_mp.calls("GET", "/tables/Events")[0].url.params
    assert sent["$filter"].startswith("Event_Title LIKE '%Men''s Retreat%'")
    assert sent["$top"] == "50"

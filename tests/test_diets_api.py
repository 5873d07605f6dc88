"""HTTP tests for the diet resource."""

import pytest

BASE = "/api/v1/diet"

DIET = {
    "name": "Low carb",
    "breakfast_liquid": "Green tea",
    "breakfast_fruit": "Apple",
    "lunch_side_dish": "Brown rice",
    "lunch_protein": "Chicken",
    "dinner_side_dish": "Quinoa",
    "calories_total_amount": 1800,
    "diet_group_id": "g1",
}


@pytest.fixture
def nutritionist(make_patient):
    return make_patient(email="n@x.com", roles=["NUTRITIONIST"])


@pytest.fixture
def nutri_header(nutritionist, auth_header):
    return auth_header("n@x.com")


def create_diet(client, headers, **overrides):
    resp = client.post(BASE + "/register", json={**DIET, **overrides}, headers=headers)
    assert resp.status_code == 201, resp.get_json()
    return resp.get_json()["data"]


def test_nutritionist_creates_diet(client, nutritionist, nutri_header):
    data = create_diet(client, nutri_header)
    assert data["breakfast_liquid"] == "Green tea"
    assert data["calories_total_amount"] == 1800
    assert data["nutritionist_id"] == nutritionist.id


def test_patient_cannot_create_diet(client, make_patient, auth_header):
    make_patient()
    resp = client.post(BASE + "/register", json=DIET, headers=auth_header())
    assert resp.status_code == 403
    assert resp.get_json()["error"] == "FORBIDDEN"


def test_required_meals_are_validated(client, nutri_header):
    payload = {k: v for k, v in DIET.items() if k != "lunch_side_dish"}
    resp = client.post(BASE + "/register", json=payload, headers=nutri_header)
    assert resp.status_code == 422
    assert "lunch_side_dish" in resp.get_json()["details"]


def test_negative_calories_rejected(client, nutri_header):
    resp = client.post(BASE + "/register", json={**DIET, "calories_total_amount": -1}, headers=nutri_header)
    assert resp.status_code == 422


def test_patient_can_read_diets(client, nutri_header, make_patient, auth_header):
    created = create_diet(client, nutri_header)
    create_diet(client, nutri_header, name="Other group", diet_group_id="g2")
    make_patient()
    headers = auth_header()

    assert len(client.get(BASE + "/all", headers=headers).get_json()["data"]) == 2
    assert client.get(f"{BASE}/{created['id']}", headers=headers).get_json()["data"]["name"] == "Low carb"
    group = client.get(BASE + "/diet-groups/g1", headers=headers).get_json()["data"]
    assert [d["id"] for d in group] == [created["id"]]


def test_reads_require_token(client):
    resp = client.get(BASE + "/all")
    assert resp.status_code == 401
    assert resp.get_json()["error"] == "TOKEN_MISSING"


def test_update_and_delete(client, nutri_header):
    created = create_diet(client, nutri_header)

    resp = client.put(BASE + "/", json={"id": created["id"], "dinner_salad": "Lettuce"}, headers=nutri_header)
    assert resp.status_code == 200
    assert resp.get_json()["data"]["dinner_salad"] == "Lettuce"
    assert resp.get_json()["data"]["breakfast_liquid"] == "Green tea"

    assert client.delete(f"{BASE}/{created['id']}", headers=nutri_header).status_code == 204
    assert client.get(f"{BASE}/{created['id']}", headers=nutri_header).status_code == 404


def test_update_unknown_diet_is_404(client, nutri_header):
    resp = client.put(BASE + "/", json={"id": "missing", "name": "x"}, headers=nutri_header)
    assert resp.status_code == 404

from barangay_records.extensions import db
from barangay_records.models import Household, HouseholdMember, TransactionLog


def _create_household(client, headers, name="Santos Household", **extra):
    resp = client.post(
        "/api/households",
        json={"household_name": name, "address": "Purok 1, Catmon", **extra},
        headers=headers,
    )
    assert resp.status_code == 201
    return resp.get_json()


def test_household_crud(client, auth_headers):
    headers = auth_headers()
    household = _create_household(client, headers, purok="Purok 1")
    assert household["purok"] == "Purok 1"

    resp = client.put(
        f"/api/households/{household['id']}",
        json={"household_name": "Santos-Reyes Household", "address": "Purok 2", "member_count": 0},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.get_json()["household_name"] == "Santos-Reyes Household"
    assert resp.get_json()["purok"] is None

    resp = client.delete(f"/api/households/{household['id']}", headers=headers)
    assert resp.get_json() == {"message": "Household deleted successfully"}
    assert client.get("/api/households").get_json() == []


def test_household_requires_name_and_address(client, auth_headers):
    resp = client.post("/api/households", json={"purok": "1"}, headers=auth_headers())
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Missing required field(s): household_name, address."


def test_list_orders_by_name_with_member_count(client, auth_headers, make_resident):
    headers = auth_headers()
    santos = _create_household(client, headers, name="Santos")
    _create_household(client, headers, name="Abad")
    juan = make_resident()
    client.post(
        f"/api/households/{santos['id']}/members",
        json={"resident_id": juan.id, "relation_to_head": "Head"},
        headers=headers,
    )

    listed = client.get("/api/households").get_json()
    assert [(h["household_name"], h["member_count"]) for h in listed] == [("Abad", 0), ("Santos", 1)]


def test_members_are_listed_with_names(client, auth_headers, make_resident):
    headers = auth_headers()
    household = _create_household(client, headers)
    juan = make_resident(first_name="Juan", last_name="Santos")
    ana = make_resident(first_name="Ana", last_name="Reyes")
    for resident, relation in ((juan, "Head"), (ana, "Spouse")):
        resp = client.post(
            f"/api/households/{household['id']}/members",
            json={"resident_id": resident.id, "relation_to_head": relation},
            headers=headers,
        )
        assert resp.status_code == 201

    members = client.get(f"/api/households/{household['id']}/members").get_json()
    assert [(m["last_name"], m["relation_to_head"]) for m in members] == [("Reyes", "Spouse"), ("Santos", "Head")]


def test_member_requires_resident_id(client, auth_headers):
    headers = auth_headers()
    household = _create_household(client, headers)
    resp = client.post(f"/api/households/{household['id']}/members", json={"relation_to_head": "Head"}, headers=headers)
    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Missing required field(s): resident_id."


def test_member_relation_update_and_removal(client, auth_headers, make_resident):
    headers = auth_headers()
    household = _create_household(client, headers)
    juan = make_resident()
    member = client.post(
        f"/api/households/{household['id']}/members",
        json={"resident_id": juan.id, "relation_to_head": "Son"},
        headers=headers,
    ).get_json()

    resp = client.put(
        f"/api/households/{household['id']}/members/{member['id']}",
        json={"relation_to_head": "Head"},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.get_json()["relation_to_head"] == "Head"

    resp = client.delete(f"/api/member/{member['id']}", headers=headers)
    assert resp.get_json() == {"message": "Member deleted successfully"}
    assert client.get(f"/api/households/{household['id']}/members").get_json() == []


def test_deleting_household_deletes_members(client, auth_headers, make_resident):
    headers = auth_headers()
    household = _create_household(client, headers)
    juan = make_resident()
    client.post(f"/api/households/{household['id']}/members", json={"resident_id": juan.id}, headers=headers)
    assert HouseholdMember.query.count() == 1

    client.delete(f"/api/households/{household['id']}", headers=headers)
    assert Household.query.count() == 0
    assert HouseholdMember.query.count() == 0


def test_update_of_missing_household_returns_null(client, auth_headers):
    resp = client.put(
        "/api/households/424242",
        json={"household_name": "Nobody", "address": "Nowhere"},
        headers=auth_headers(),
    )
    assert resp.status_code == 200
    assert resp.get_json() is None
    assert TransactionLog.query.filter(TransactionLog.action.like("Updated%")).count() == 0


def test_update_of_member_in_other_household_is_not_logged(client, auth_headers, make_resident):
    headers = auth_headers()
    household = _create_household(client, headers)
    other = _create_household(client, headers, name="Reyes Household")
    member = client.post(
        f"/api/households/{household['id']}/members",
        json={"resident_id": make_resident().id, "relation_to_head": "Son"},
        headers=headers,
    ).get_json()

    resp = client.put(
        f"/api/households/{other['id']}/members/{member['id']}",
        json={"relation_to_head": "Head"},
        headers=headers,
    )
    assert resp.status_code == 200
    assert resp.get_json() is None
    assert db.session.get(HouseholdMember, member["id"]).relation_to_head == "Son"
    assert TransactionLog.query.filter(TransactionLog.action.like("Updated%")).count() == 0

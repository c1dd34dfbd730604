import pytest

from conftest import CLIENT_BODY


def _client(c, **overrides):
    r = c.post("/api/clients", json={**CLIENT_BODY, **overrides})
    assert r.status_code == 201, r.text
    return r.json()


def _quotation(c, client_id, **overrides):
    body = {"clientId": client_id, "details": "Full roof replacement", "amount": 1250.5}
    body.update(overrides)
    return c.post("/api/quotations", json=body)


def _reminder(c, client_id, when, **overrides):
    body = {"clientId": client_id, "message": "Call about the quote", "reminderDateTime": when, "type": "meeting"}
    body.update(overrides)
    return c.post("/api/reminders", json=body)


def test_clients_are_scoped_to_owner_and_admin_sees_all(as_user, admin_client):
    alice = as_user("alice")
    bob = as_user("bob")

    a = _client(alice, name="Alice Client")
    b = _client(bob, name="Bob Client")
    assert a["owner_id"] != b["owner_id"]
    assert a["priority"] == "1 month"

    assert [c["name"] for c in alice.get("/api/clients").json()] == ["Alice Client"]
    assert [c["name"] for c in bob.get("/api/clients").json()] == ["Bob Client"]
    assert {c["name"] for c in admin_client.get("/api/clients").json()} == {"Alice Client", "Bob Client"}

    assert alice.put(f"/api/clients/{b['client_id']}", json={"name": "Hijacked"}).status_code == 403
    assert alice.delete(f"/api/clients/{b['client_id']}").status_code == 403
    assert bob.get(f"/api/clients/{b['client_id']}").json()["name"] == "Bob Client"

    r = admin_client.put(f"/api/clients/{b['client_id']}", json={"priority": "3 months"})
    assert r.status_code == 200
    assert r.json()["priority"] == "3 months"


def test_client_validation_and_not_found(as_user):
    alice = as_user("alice")

    assert alice.post("/api/clients", json={**CLIENT_BODY, "phone": "123"}).status_code == 400
    assert alice.post("/api/clients", json={**CLIENT_BODY, "priority": "someday"}).status_code == 400
    assert alice.post("/api/clients", json={**CLIENT_BODY, "owner_id": 99}).status_code == 400

    r = alice.get("/api/clients/9999")
    assert r.status_code == 404
    assert r.json() == {"detail": "client_not_found"}

    created = _client(alice)
    r = alice.put(f"/api/clients/{created['client_id']}", json={"owner_id": 1})
    assert r.status_code == 400
    r = alice.put(f"/api/clients/{created['client_id']}", json={"name": None})
    assert r.status_code == 400


def test_quotation_must_reference_an_accessible_client(as_user, admin_client):
    alice = as_user("alice")
    bob = as_user("bob")
    bobs = _client(bob)

    r = _quotation(alice, bobs["client_id"])
    assert r.status_code == 403

    r = _quotation(alice, 9999)
    assert r.status_code == 404
    assert r.json() == {"detail": "client_not_found"}

    r = _quotation(bob, bobs["client_id"], amount=0)
    assert r.status_code == 400

    r = _quotation(bob, bobs["client_id"])
    assert r.status_code == 201
    q = r.json()
    assert q["client_name"] == CLIENT_BODY["name"]
    assert q["status"] == "draft"

    assert alice.get(f"/api/quotations/{q['quotation_id']}").status_code == 403
    assert alice.get("/api/quotations").json() == []
    assert len(admin_client.get("/api/quotations").json()) == 1

    r = bob.put(f"/api/quotations/{q['quotation_id']}", json={"status": "accepted"})
    assert r.status_code == 200
    assert r.json()["status"] == "accepted"

    r = bob.delete(f"/api/quotations/{q['quotation_id']}")
    assert r.json() == {"message": "quotation_deleted"}
    assert bob.get(f"/api/quotations/{q['quotation_id']}").status_code == 404


@pytest.mark.parametrize("literal", ["Infinity", "-Infinity", "NaN"])
def test_quotation_amount_must_be_finite(as_user, literal):
    alice = as_user("alice")
    c = _client(alice)
    headers = {"Content-Type": "application/json"}

    body = '{"clientId": %d, "details": "Full roof replacement", "amount": %s}' % (c["client_id"], literal)
    r = alice.post("/api/quotations", content=body, headers=headers)
    assert r.status_code == 400
    assert alice.get("/api/quotations").json() == []

    q = _quotation(alice, c["client_id"]).json()
    r = alice.put(f"/api/quotations/{q['quotation_id']}", content='{"amount": %s}' % literal, headers=headers)
    assert r.status_code == 400
    assert alice.get(f"/api/quotations/{q['quotation_id']}").json()["amount"] == 1250.5


def test_renaming_a_client_updates_linked_records(as_user):
    alice = as_user("alice")
    c = _client(alice)
    q = _quotation(alice, c["client_id"]).json()
    rem = _reminder(alice, c["client_id"], "2030-01-01T09:00:00Z").json()

    r = alice.put(f"/api/clients/{c['client_id']}", json={"name": "Acme Holdings"})
    assert r.status_code == 200

    assert alice.get(f"/api/quotations/{q['quotation_id']}").json()["client_name"] == "Acme Holdings"
    assert alice.get(f"/api/reminders/{rem['reminder_id']}").json()["client_name"] == "Acme Holdings"


def test_deleting_a_client_cascades(as_user):
    alice = as_user("alice")
    keep = _client(alice, name="Keep Me")
    drop = _client(alice, name="Drop Me")
    for c in (keep, drop):
        assert _quotation(alice, c["client_id"]).status_code == 201
        assert _reminder(alice, c["client_id"], "2030-01-01T09:00:00Z").status_code == 201

    r = alice.delete(f"/api/clients/{drop['client_id']}")
    assert r.status_code == 200
    assert r.json() == {"message": "client_deleted", "deleted": {"quotations": 1, "reminders": 1}}

    assert {q["client_id"] for q in alice.get("/api/quotations").json()} == {keep["client_id"]}
    assert {x["client_id"] for x in alice.get("/api/reminders").json()} == {keep["client_id"]}


def test_reminders_sorted_soonest_first_and_toggle(as_user):
    alice = as_user("alice")
    c = _client(alice)
    for when in ("2031-03-01T10:00:00Z", "2030-01-01T09:00:00Z", "2030-06-15T12:30:00Z"):
        assert _reminder(alice, c["client_id"], when).status_code == 201

    listed = alice.get("/api/reminders").json()
    stamps = [x["reminder_at"] for x in listed]
    assert stamps == sorted(stamps)
    assert stamps[0].startswith("2030-01-01")
    assert all(x["completed"] is False for x in listed)

    rid = listed[0]["reminder_id"]
    r = alice.patch(f"/api/reminders/{rid}", json={"completed": True})
    assert r.status_code == 200
    assert r.json()["completed"] is True

    r = alice.patch(f"/api/reminders/{rid}", json={"completed": True, "message": "nope"})
    assert r.status_code == 400

    assert _reminder(alice, c["client_id"], "2030-01-01T09:00:00Z", type="carrier-pigeon").status_code == 400

    r = alice.delete(f"/api/reminders/{rid}")
    assert r.json() == {"message": "reminder_deleted"}
    assert len(alice.get("/api/reminders").json()) == 2


def test_reminder_toggle_respects_ownership(as_user):
    alice = as_user("alice")
    bob = as_user("bob")
    c = _client(bob)
    rid = _reminder(bob, c["client_id"], "2030-01-01T09:00:00Z").json()["reminder_id"]

    assert alice.patch(f"/api/reminders/{rid}", json={"completed": True}).status_code == 403
    assert bob.get(f"/api/reminders/{rid}").json()["completed"] is False


def test_user_admin_endpoints(as_user, admin_client):
    alice = as_user("alice")

    assert alice.get("/api/users").status_code == 403
    assert alice.get("/api/users").json() == {"detail": "admin_required"}

    users = admin_client.get("/api/users").json()
    by_name = {u["username"]: u for u in users}
    assert set(by_name) == {"admin", "alice"}
    assert all("password_hash" not in u for u in users)

    r = admin_client.delete(f"/api/users/{by_name['admin']['user_id']}")
    assert r.status_code == 403
    assert r.json() == {"detail": "cannot_delete_self"}

    r = admin_client.put(f"/api/users/{by_name['alice']['user_id']}", json={"role": "admin"})
    assert r.status_code == 200
    assert r.json()["role"] == "admin"

    r = admin_client.put(f"/api/users/{by_name['alice']['user_id']}", json={"username": "admin"})
    assert r.status_code == 409

    assert admin_client.get("/api/users/9999").status_code == 404


def test_deleting_a_user_removes_their_records(as_user, admin_client):
    alice = as_user("alice")
    bob = as_user("bob")
    c = _client(alice)
    _quotation(alice, c["client_id"])
    _reminder(alice, c["client_id"], "2030-01-01T09:00:00Z")
    _client(bob, name="Bob Client")
    # Records the admin owns but attached to alice's client go with it.
    assert _quotation(admin_client, c["client_id"]).status_code == 201
    assert _reminder(admin_client, c["client_id"], "2030-02-01T09:00:00Z").status_code == 201

    alice_id = alice.get("/api/profile").json()["user_id"]
    r = admin_client.delete(f"/api/users/{alice_id}")
    assert r.status_code == 200
    assert r.json()["deleted"] == {"reminders": 2, "quotations": 2, "clients": 1}

    assert [c["name"] for c in admin_client.get("/api/clients").json()] == ["Bob Client"]
    assert admin_client.get("/api/quotations").json() == []
    assert admin_client.get("/api/reminders").json() == []
    assert admin_client.get(f"/api/users/{alice_id}").status_code == 404

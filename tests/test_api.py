import logging
from datetime import date, timedelta

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from herdbook import models


def _today(offset: int = 0) -> str:
    return (date.today() + timedelta(days=offset)).isoformat()


def _breed(client, animal_id, breeding_date, **extra):
    r = client.post(
        "/breedings/",
        json={"animal_id": animal_id, "breeding_date": breeding_date, **extra},
    )
    assert r.status_code == 200, r.text
    return r.json()


def test_create_animal_and_list(client):
    r = client.post(
        "/animals/",
        json={
            "ear_tag": "C7",
            "sex": "Female",
            "breed": "Jersey",
            "birth_date": "2022-03-01",
            "notes": None,
        },
    )
    assert r.status_code == 200, r.text
    data = r.json()
    assert data["status"] == "Active"
    assert "id" in data

    r2 = client.get("/animals/")
    assert r2.status_code == 200
    assert any(a["ear_tag"] == "C7" for a in r2.json())

    r3 = client.get("/animals/by-tag/C7")
    assert r3.status_code == 200
    assert r3.json()["id"] == data["id"]


def test_animal_validation(client, cow):
    dup = client.post("/animals/", json={"ear_tag": "C100", "sex": "Female"})
    assert dup.status_code == 409
    assert "C100" in dup.json()["detail"]

    bad_tag = client.post("/animals/", json={"ear_tag": "C-1 00", "sex": "Female"})
    assert bad_tag.status_code == 422

    sold = client.post("/animals/", json={"ear_tag": "C200", "status": "Sold"})
    assert sold.status_code == 400

    self_parent = client.patch(f"/animals/{cow['id']}", json={"dam_id": cow["id"]})
    assert self_parent.status_code == 400

    null_tag = client.patch(f"/animals/{cow['id']}", json={"ear_tag": None})
    assert null_tag.status_code == 422
    assert client.get(f"/animals/{cow['id']}").json()["ear_tag"] == "C100"

    assert client.get("/animals/9999").status_code == 404


def test_breeding_then_pregnant_flow(client, cow, bull):
    breeding = _breed(client, cow["id"], "2024-01-01", sire_ear_tag="B1", breeding_method="AI")
    assert breeding["pd_result"] == "Unchecked"
    assert breeding["heat_check_date"] == "2024-01-22"
    assert breeding["pregnancy_check_due_date"] == "2024-01-30"
    assert breeding["expected_calving_date"] == "2024-10-10"

    animal = client.get(f"/animals/{cow['id']}").json()
    assert animal["pregnancy_status"] == "Waiting for PD"

    r = client.patch(f"/breedings/{breeding['id']}/pd", json={"result": "Pregnant"})
    assert r.status_code == 200, r.text
    updated = r.json()
    assert updated["pd_result"] == "Pregnant"
    assert updated["confirmed_pregnant"] is True
    assert updated["expected_calving_date"] == "2024-10-10"
    assert updated["pregnancy_check_date"] == _today()

    animal = client.get(f"/animals/{cow['id']}").json()
    assert animal["status"] == "Pregnant"
    assert animal["pregnancy_status"] == "Pregnant"
    assert animal["expected_calving_date"] == "2024-10-10"

    notes = client.get("/notifications/").json()
    scheduled = {(n["title"], n["scheduled_for"]) for n in notes}
    assert ("Expected calving soon", "2024-10-10") in scheduled
    assert ("PD check due", "2024-01-30") in scheduled
    assert notes[0]["scheduled_for"] == "2024-10-10"
    assert notes[0]["ear_tag"] == "C100"

    again = client.patch(f"/breedings/{breeding['id']}/pd", json={"result": "Empty"})
    assert again.status_code == 409


def test_early_pd_needs_confirmation(client, cow):
    breeding = _breed(client, cow["id"], _today())

    r = client.patch(f"/breedings/{breeding['id']}/pd", json={"result": "Empty"})
    assert r.status_code == 409
    assert "confirm_early" in r.json()["detail"]

    r = client.patch(
        f"/breedings/{breeding['id']}/pd",
        json={"result": "Empty", "confirm_early": True},
    )
    assert r.status_code == 200, r.text
    record = r.json()
    assert record["pd_result"] == "Empty"
    assert record["expected_calving_date"] is None
    assert record["post_pd_treatment_due_date"] == _today(29)
    assert record["keep_in_breeding_until"] == _today(29)

    animal = client.get(f"/animals/{cow['id']}").json()
    assert animal["status"] == "Empty"
    assert animal["pregnancy_status"] == "Empty"
    assert animal["reopen_date"] == _today(60)
    assert animal["expected_calving_date"] is None

def test_pd_rejected_for_sold_animal(client, cow):
    breeding = _breed(client, cow["id"], "2024-01-01")
    r = client.patch(f"/animals/{cow['id']}", json={"status": "Sold"})
    assert r.status_code == 200, r.text

    r = client.patch(f"/breedings/{breeding['id']}/pd", json={"result": "Pregnant"})
    assert r.status_code == 400
    assert "Sold" in r.json()["detail"]

    animal = client.get(f"/animals/{cow['id']}").json()
    assert animal["status"] == "Sold"
    assert client.get(f"/animals/{cow['id']}/status").json()["combined"]["label"] == "Sold"
    assert client.get(f"/breedings/{breeding['id']}").json()["pd_result"] == "Unchecked"


def _raise_db_error(*args, **kwargs):
    raise SQLAlchemyError("database unavailable")


def test_notification_failure_does_not_fail_breeding(client, cow, monkeypatch, caplog):
    monkeypatch.setattr(models.Notification, "__init__", _raise_db_error)

    with caplog.at_level(logging.WARNING, logger="herdbook.routers.breedings"):
        breeding = _breed(client, cow["id"], "2024-01-01")
        r = client.patch(f"/breedings/{breeding['id']}/pd", json={"result": "Pregnant"})

    assert r.status_code == 200, r.text
    assert r.json()["pd_result"] == "Pregnant"
    assert "Could not create notification" in caplog.text

    monkeypatch.undo()
    animal = client.get(f"/animals/{cow['id']}").json()
    assert animal["status"] == "Pregnant"
    assert client.get("/notifications/").json() == []


def test_pd_commit_failure_rolls_back(client, cow, monkeypatch):
    breeding = _breed(client, cow["id"], "2024-01-01")

    monkeypatch.setattr(Session, "commit", _raise_db_error)
    r = client.patch(f"/breedings/{breeding['id']}/pd", json={"result": "Pregnant"})
    monkeypatch.undo()

    assert r.status_code == 500
    assert r.json()["detail"] == "Failed to update pregnancy diagnosis result."

    assert client.get(f"/breedings/{breeding['id']}").json()["pd_result"] == "Unchecked"
    animal = client.get(f"/animals/{cow['id']}").json()
    assert animal["status"] == "Active"
    assert animal["pregnancy_status"] == "Waiting for PD"
    assert animal["expected_calving_date"] is None



def test_breeding_rejects_bad_dam_and_sire(client, cow, bull):
    r = client.post("/breedings/", json={"animal_id": bull["id"], "breeding_date": "2024-01-01"})
    assert r.status_code == 400

    r = client.post(
        "/breedings/",
        json={"animal_id": cow["id"], "breeding_date": "2024-01-01", "sire_ear_tag": "C100"},
    )
    assert r.status_code == 400

    r = client.patch("/breedings/9999/pd", json={"result": "Pregnant"})
    assert r.status_code == 404

    r = client.patch("/breedings/9999/pd", json={"result": "Maybe"})
    assert r.status_code == 422


def test_breeding_actions_and_heat_check(client, cow):
    breeding = _breed(client, cow["id"], "2024-01-01")

    actions = client.get("/breedings/actions").json()
    assert [i["breeding_record_id"] for i in actions["needs_pd_check"]] == [breeding["id"]]
    assert [i["breeding_record_id"] for i in actions["needs_heat_check"]] == [breeding["id"]]
    assert actions["needs_pd_check"][0]["due_date"] == "2024-01-30"

    r = client.patch(f"/breedings/{breeding['id']}/heat", json={"returned_to_heat": False})
    assert r.status_code == 200
    assert r.json()["returned_to_heat"] is False

    actions = client.get("/breedings/actions").json()
    assert actions["needs_heat_check"] == []
    assert len(actions["needs_pd_check"]) == 1


def test_breeding_history_hides_expired_empty_until_treated(client, db, cow):
    breeding = _breed(client, cow["id"], "2024-01-01")
    client.patch(f"/breedings/{breeding['id']}/pd", json={"result": "Empty"})

    history = client.get("/breedings/history").json()
    assert [row["id"] for row in history] == [breeding["id"]]
    assert history[0]["dam_ear_tag"] == "C100"
    assert history[0]["treated"] is False

    # Keep-until date already behind us
    past = date.today() - timedelta(days=1)
    db.query(models.BreedingRecord).filter(models.BreedingRecord.id == breeding["id"]).update(
        {"keep_in_breeding_until": past, "post_pd_treatment_due_date": past}
    )
    db.commit()
    assert client.get("/breedings/history").json() == []

    med = client.post("/medicines/", json={"name": "PGF2a", "stock_quantity": 10, "unit": "doses"}).json()
    r = client.post(
        "/medicines/usage",
        json={
            "medicine_id": med["id"],
            "animal_id": cow["id"],
            "breeding_record_id": breeding["id"],
            "date_administered": _today(),
            "quantity_used": 1,
        },
    )
    assert r.status_code == 200, r.text

    history = client.get("/breedings/history").json()
    assert [row["id"] for row in history] == [breeding["id"]]
    assert history[0]["treated"] is True
    assert history[0]["keep_in_breeding_until"] == _today(60)

    animal = client.get(f"/animals/{cow['id']}").json()
    assert animal["status"] == "Open"
    assert animal["pregnancy_status"] == "Open"


def test_calving_creates_calf_and_freshens_dam(client, cow, bull):
    breeding = _breed(client, cow["id"], "2024-01-01", sire_ear_tag="B1")
    client.patch(f"/breedings/{breeding['id']}/pd", json={"result": "Pregnant"})

    r = client.post(
        "/calvings/",
        json={
            "animal_id": cow["id"],
            "calving_date": _today(),
            "calf_ear_tag": "H300",
            "calf_sex": "Female",
            "birth_weight": 38.5,
            "create_calf": True,
        },
    )
    assert r.status_code == 200, r.text
    calving = r.json()
    assert calving["breeding_record_id"] == breeding["id"]
    assert calving["calf_id"] is not None

    calf = client.get(f"/animals/{calving['calf_id']}").json()
    assert calf["ear_tag"] == "H300"
    assert calf["dam_id"] == cow["id"]
    assert calf["sire_id"] == bull["id"]
    assert calf["birth_date"] == _today()

    dam = client.get(f"/animals/{cow['id']}").json()
    assert dam["status"] == "Fresh"
    assert dam["pregnancy_status"] == "Empty"
    assert dam["milking_status"] == "Milking"
    assert dam["expected_calving_date"] is None

    status = client.get(f"/animals/{cow['id']}/status").json()
    assert status["combined"]["label"] == "Fresh"
    assert status["combined"]["priority"] == 7
    assert status["repro"]["label"] == "Fresh"
    assert status["classification"]["label"] == "Milking"
    assert status["milking"]["label"] == "Milking"

    stats = client.get("/calvings/stats").json()
    assert stats["total_calvings_this_year"] == 1
    assert stats["calvings_last_30_days"] == 1
    assert stats["live_birth_rate"] == 100
    assert stats["female_calves"] == 1

    dup = client.post(
        "/calvings/",
        json={"animal_id": cow["id"], "calving_date": _today(), "calf_ear_tag": "H300", "create_calf": True},
    )
    assert dup.status_code == 409

    missing_tag = client.post(
        "/calvings/",
        json={"animal_id": cow["id"], "calving_date": _today(), "create_calf": True},
    )
    assert missing_tag.status_code == 422


def test_delete_animal_keeps_offspring(client, cow):
    calf = client.post("/animals/", json={"ear_tag": "H1", "sex": "Male", "dam_id": cow["id"]}).json()
    _breed(client, cow["id"], "2024-01-01")

    r = client.delete(f"/animals/{cow['id']}")
    assert r.status_code == 204

    assert client.get(f"/animals/{cow['id']}").status_code == 404
    assert client.get(f"/animals/{calf['id']}").json()["dam_id"] is None
    assert client.get("/breedings/").json() == []


def test_milking_and_health_records(client, cow, bull):
    r = client.post(
        "/milking/",
        json={"animal_id": cow["id"], "milking_date": _today(), "milk_yield": 24.5, "fat_percentage": 4.1},
    )
    assert r.status_code == 200, r.text
    rec = r.json()

    assert client.post(
        "/milking/", json={"animal_id": cow["id"], "milking_date": _today()}
    ).status_code == 422
    assert client.post(
        "/milking/", json={"animal_id": bull["id"], "milking_date": _today(), "milk_yield": 1}
    ).status_code == 400

    r = client.patch(f"/milking/{rec['id']}", json={"milk_yield": 26})
    assert r.json()["milk_yield"] == 26
    assert len(client.get("/milking/", params={"animal_id": cow["id"]}).json()) == 1

    h = client.post(
        "/health-records/",
        json={"animal_id": cow["id"], "record_date": _today(), "record_type": "Vaccination", "dose_ml": 2},
    )
    assert h.status_code == 200, h.text
    assert len(client.get("/health-records/", params={"animal_id": cow["id"]}).json()) == 1

    assert client.delete(f"/milking/{rec['id']}").status_code == 204


def test_medicine_usage_rules(client, cow):
    expired = client.post(
        "/medicines/",
        json={"name": "Oxytet", "stock_quantity": 100, "unit": "ml", "expiration_date": "2020-05-01"},
    ).json()
    fresh = client.post(
        "/medicines/",
        json={"name": "Ivermectin", "stock_quantity": 20, "unit": "ml", "low_stock_threshold": 15},
    ).json()

    usage = {"animal_id": cow["id"], "date_administered": _today()}

    r = client.post("/medicines/usage", json={**usage, "medicine_id": expired["id"], "quantity_used": 5})
    assert r.status_code == 400
    assert r.json()["detail"] == "Cannot use expired medicine. Oxytet expired on 05/01/2020."

    r = client.post("/medicines/usage", json={**usage, "medicine_id": fresh["id"], "quantity_used": 50})
    assert r.status_code == 400

    r = client.post("/medicines/usage", json={**usage, "medicine_id": fresh["id"], "quantity_used": 8})
    assert r.status_code == 200, r.text

    meds = {m["name"]: m for m in client.get("/medicines/").json()}
    assert meds["Ivermectin"]["stock_quantity"] == 12
    # expiring stock sorts first
    assert client.get("/medicines/").json()[0]["name"] == "Oxytet"

    low = [m["name"] for m in client.get("/medicines/low-stock").json()]
    assert low == ["Ivermectin"]

    assert client.post("/medicines/", json={"name": "", "stock_quantity": 1, "unit": "ml"}).status_code == 422
    assert client.delete(f"/medicines/{expired['id']}").status_code == 204


def test_diesel_and_feed_ledgers(client):
    for entry in (
        {"event_date": "2024-03-01", "volume_liters": 100, "type": "addition"},
        {"event_date": "2024-03-02", "volume_liters": 30, "type": "consumption"},
        {"event_date": "2024-03-03", "volume_liters": -5, "type": "correction"},
    ):
        assert client.post("/diesel/", json=entry).status_code == 200

    bad = client.post("/diesel/", json={"event_date": "2024-03-04", "volume_liters": -1, "type": "consumption"})
    assert bad.status_code == 422

    assert client.get("/diesel/balance").json() == {"balance": 65.0, "entries": 3}

    client.post("/feed/", json={"event_date": "2024-03-01", "feeds": 100, "type": "addition"})
    r = client.post("/feed/", json={"event_date": "2024-03-02", "feeds": 40, "type": "consumption"})
    assert r.json()["type"] == "consumption"
    assert r.json()["feeds"] == 40

    feed = client.get("/feed/").json()
    assert [f["type"] for f in feed] == ["consumption", "addition"]
    assert client.get("/feed/balance").json() == {"balance": 60.0, "entries": 2}


def test_email_whitelist(client):
    r = client.post("/whitelist/", json={"email": "  Manager@Example.COM "})
    assert r.status_code == 200, r.text
    assert r.json()["email"] == "manager@example.com"

    assert client.post("/whitelist/", json={"email": "manager@example.com"}).status_code == 409
    assert client.post("/whitelist/", json={"email": "not-an-email"}).status_code == 422

    check = client.post("/whitelist/check", json={"email": "MANAGER@example.com"}).json()
    assert check["is_whitelisted"] is True

    client.post("/whitelist/mark-registered", json={"email": "manager@example.com"})
    check = client.post("/whitelist/check", json={"email": "manager@example.com"}).json()
    assert check["is_whitelisted"] is False
    assert "already exists" in check["message"]

    unknown = client.post("/whitelist/check", json={"email": "stranger@example.com"}).json()
    assert unknown["is_whitelisted"] is False
    assert "not authorized" in unknown["message"]

    client.post("/whitelist/", json={"email": "hand@example.com"})
    r = client.post("/whitelist/deactivate", json={"email": "hand@example.com"})
    assert r.json()["is_active"] is False
    assert client.post("/whitelist/check", json={"email": "hand@example.com"}).json()["is_whitelisted"] is False

    assert client.delete("/whitelist/hand@example.com").status_code == 204
    assert [e["email"] for e in client.get("/whitelist/").json()] == ["manager@example.com"]


def test_notifications_read_state(client, cow):
    _breed(client, cow["id"], "2024-01-01")
    _breed(client, cow["id"], "2024-02-01")

    notes = client.get("/notifications/").json()
    assert len(notes) == 2
    assert all(n["read"] is False for n in notes)

    r = client.patch(f"/notifications/{notes[0]['id']}", json={"read": True})
    assert r.json()["read"] is True
    assert len(client.get("/notifications/", params={"unread_only": True}).json()) == 1

    assert client.post("/notifications/read-all").json() == {"updated": 1}
    assert client.get("/notifications/", params={"unread_only": True}).json() == []


def test_dashboard_options_and_summary(client, cow, bull):
    _breed(client, cow["id"], "2024-01-01")
    soon = client.post("/animals/", json={"ear_tag": "C101", "sex": "Female"}).json()
    b = _breed(client, soon["id"], (date.today() - timedelta(days=276)).isoformat())
    client.patch(f"/breedings/{b['id']}/pd", json={"result": "Pregnant"})
    client.post("/medicines/", json={"name": "Calcium", "stock_quantity": 2, "unit": "bottles"})

    todo = client.get("/dashboard/todo").json()
    assert [i["ear_tag"] for i in todo["pd_checks_due"]] == ["C100"]
    assert [i["ear_tag"] for i in todo["heat_checks_due"]] == ["C100"]
    assert [i["ear_tag"] for i in todo["calvings_due"]] == ["C101"]
    assert todo["calvings_due"][0]["days_until_due"] == 7
    assert [m["name"] for m in todo["low_stock_medicines"]] == ["Calcium"]

    dams = client.get("/options/dams").json()
    assert [d["label"] for d in dams] == ["C100 (Daisy)", "C101"]
    assert [s["id"] for s in client.get("/options/sires").json()] == [bull["id"]]
    assert len(client.get("/options/animals").json()) == 3

    summary = client.get("/reports/summary").json()
    assert summary["animals"]["total"] == 3
    assert summary["animals"]["female"] == 2
    assert summary["animals"]["pregnant"] == 1
    assert summary["calvings"]["total_calvings_this_year"] == 0

    assert client.get("/").json()["status"] == "ok"

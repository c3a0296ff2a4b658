from datetime import date, timedelta

from herdbook.status import (
    age_in_months,
    animal_statuses,
    classification,
    combined_status,
    days_to_nearest_calving,
    milking_status,
    repro_status,
)

TODAY = date(2024, 6, 15)


def _days(n: int) -> date:
    return TODAY + timedelta(days=n)


def _cow(**kw):
    return {"id": 1, "ear_tag": "C1", "sex": "Female", "status": "Active", **kw}


def _record(**kw):
    base = {"id": 10, "animal_id": 1, "breeding_date": _days(-40), "pd_result": "Unchecked"}
    return {**base, **kw}


def test_terminal_status_wins_over_pregnancy():
    animal = _cow(status="Deceased")
    records = [_record(pd_result="Pregnant", confirmed_pregnant=True)]

    info = combined_status(animal, breeding_records=records, calvings=[], today=TODAY)
    assert info.label == "Deceased"
    assert info.priority == 0
    assert info.variant == "destructive"

    sold = combined_status(_cow(status="Sold"), breeding_records=records, calvings=[], today=TODAY)
    assert (sold.label, sold.variant) == ("Sold", "outline")


def test_recent_calving_is_fresh_regardless_of_breedings():
    calvings = [{"animal_id": 1, "calving_date": _days(-10)}]
    for record in (
        _record(pd_result="Pregnant", confirmed_pregnant=True),
        _record(pd_result="Unchecked"),
        _record(pd_result="Empty"),
    ):
        info = combined_status(_cow(), breeding_records=[record], calvings=calvings, today=TODAY)
        assert info.label == "Fresh"
        assert info.priority == 7
        assert info.details == "10d since calving"


def test_combined_status_from_latest_breeding():
    pregnant = _record(breeding_date=_days(-70), pd_result="Pregnant", confirmed_pregnant=True)
    info = combined_status(_cow(), breeding_records=[pregnant], calvings=[], today=TODAY)
    assert (info.label, info.priority, info.details) == ("Pregnant", 6, "10 weeks")

    overdue = _record(breeding_date=_days(-40))
    info = combined_status(_cow(), breeding_records=[pregnant, overdue], calvings=[], today=TODAY)
    assert (info.label, info.variant, info.priority) == ("Check Due", "warning", 5)

    waiting = _record(breeding_date=_days(-5))
    info = combined_status(_cow(), breeding_records=[waiting], calvings=[], today=TODAY)
    assert (info.label, info.variant) == ("Awaiting PD Check", "info")


def test_combined_status_ignores_breedings_before_last_calving():
    old = _record(breeding_date=_days(-400), pd_result="Pregnant", confirmed_pregnant=True)
    calvings = [{"animal_id": 1, "calving_date": _days(-100)}]
    info = combined_status(_cow(status="Open"), breeding_records=[old], calvings=calvings, today=TODAY)
    assert info.label == "Open"


def test_combined_status_legacy_fallback():
    assert combined_status(_cow(status="Fresh"), [], [], TODAY).label == "Empty"
    assert combined_status(_cow(status="Whatever"), [], [], TODAY).label == "Active"
    assert combined_status(_cow(sex="Male"), [_record()], [], TODAY).label == "Active"


def test_repro_status_labels():
    male = {"id": 2, "sex": "Male"}
    assert repro_status(male, [], [], TODAY).label == "N/A"

    fresh = repro_status(_cow(), [{"calving_date": _days(-45)}], [], TODAY)
    assert fresh.label == "Fresh"
    assert fresh.days_since_last_calving == 45

    heat = repro_status(_cow(), [], [_record(returned_to_heat=True)], TODAY)
    assert heat.label == "Returned to heat"

    pregnant = repro_status(
        _cow(),
        [],
        [_record(pd_result="Pregnant", confirmed_pregnant=True, expected_calving_date=_days(200))],
        TODAY,
    )
    assert pregnant.label == "Pregnant"
    assert pregnant.days_until_due == 200

    due = repro_status(_cow(), [], [_record(heat_check_date=_days(-1))], TODAY)
    assert due.label == "Heat check due"
    pending = repro_status(_cow(), [], [_record(heat_check_date=_days(3))], TODAY)
    assert pending.label == "Pending PD"

    empty = repro_status(_cow(), [], [_record(pd_result="Empty", breeding_date=_days(-30))], TODAY)
    assert empty.label == "Empty"
    assert empty.details["days_empty"] == 30
    reopened = repro_status(_cow(), [], [_record(pd_result="Empty", breeding_date=_days(-90))], TODAY)
    assert reopened.label == "Open"


def test_dry_inside_sixty_days_of_calving():
    animal = _cow(status="Pregnant")
    near = [_record(pd_result="Pregnant", expected_calving_date=_days(45))]
    far = [_record(pd_result="Pregnant", expected_calving_date=_days(90))]

    info = classification(animal, breeding_records=near, today=TODAY)
    assert info.label == "Dry"
    assert info.details == "45d to calving"
    assert classification(animal, breeding_records=far, today=TODAY).label != "Dry"


def test_classification_by_age():
    assert classification(_cow(birth_date=_days(-200)), [], TODAY).label == "Nursery"
    assert classification(_cow(birth_date=date(2023, 3, 1)), [], TODAY).label == "Heifer"
    assert classification(_cow(birth_date=date(2020, 1, 1)), [], TODAY).label == "Adult Cow"
    assert classification(_cow(status="Pregnant", birth_date=date(2020, 1, 1)), [], TODAY).label == "Pregnant Cow"
    assert classification(_cow(birth_date=_days(10)), [], TODAY).label == "Not Born Yet"
    assert classification(_cow(), [], TODAY).label == "Unknown"
    assert classification(_cow(status="Fresh"), [], TODAY).label == "Milking"


def test_age_and_nearest_calving_helpers():
    assert age_in_months(date(2023, 6, 15), TODAY) == 12
    assert age_in_months(date(2023, 6, 16), TODAY) == 11

    records = [
        _record(pd_result="Empty", expected_calving_date=_days(5)),
        _record(pd_result="Pregnant", expected_calving_date=_days(-3)),
        _record(pd_result="Pregnant", expected_calving_date=_days(30)),
    ]
    assert days_to_nearest_calving(records, TODAY) == 30
    assert days_to_nearest_calving([], TODAY) is None


def test_animal_statuses_reads_relationships():
    class Animal:
        id = 1
        ear_tag = "C1"
        sex = "Female"
        status = "Active"
        pregnancy_status = None
        birth_date = date(2020, 1, 1)
        breeding_records = [_record(breeding_date=_days(-5))]
        calvings = []

    out = animal_statuses(Animal(), today=TODAY)
    assert out["combined"]["label"] == "Awaiting PD Check"
    assert out["repro"]["label"] == "Pending PD"
    assert out["classification"]["label"] == "Adult Cow"
    assert out["milking"]["label"] == "Milking"


def test_milking_status_rules():
    assert milking_status({"id": 2, "sex": "Male"}, [], [], TODAY).label == "N/A"

    calved = [{"animal_id": 1, "calving_date": _days(-20)}]
    # fresh cows milk even if someone marked them dry
    assert milking_status(_cow(milking_status="Dry"), [], calved, TODAY).label == "Milking"

    in_calf_again = [_record(breeding_date=_days(-10), pd_result="Pregnant", confirmed_pregnant=True)]
    info = milking_status(_cow(milking_status="Dry"), in_calf_again, calved, TODAY)
    assert (info.label, info.variant) == ("Dry", "warning")

    # manual Dry without a pregnancy is stale
    assert milking_status(_cow(milking_status="Dry"), [], [], TODAY).label == "Milking"

    late = [_record(breeding_date=_days(-31 * 7), pd_result="Pregnant", confirmed_pregnant=True)]
    assert milking_status(_cow(milking_status="Milking"), late, [], TODAY).label == "Milking"

    info = milking_status(_cow(), late, [], TODAY)
    assert (info.label, info.details) == ("Dry", "31 weeks")

    mid = [_record(breeding_date=_days(-20 * 7), pd_result="Pregnant", confirmed_pregnant=True)]
    assert milking_status(_cow(), mid, [], TODAY).label == "Milking"

from datetime import date

from doctora.filters import FilterCriteria, FilterState, filter_doctors
from doctora.models import Doctor

DOCTORS = [
    Doctor(id=1, name="นพ. กฤต อินทรจินดา", department="กระดูกและข้อ", gender="ชาย",
           available_times=["9:00-10:00", "13:00-14:00"], available_dates=[date(2025, 9, 23)],
           next_available_time="9:00-10:00"),
    Doctor(id=2, name="Dr. Remo", department="หัวใจและทรวงอก", gender="ชาย",
           available_times=["10:00-11:00"], available_dates=[date(2025, 9, 24)]),
    Doctor(id=3, name="นพ.อิง", department="นรีเวชกรรม", gender="หญิง",
           available_times=["11:00-12:00"], available_dates=[date(2025, 9, 23)],
           next_available_time="11:00-12:00"),
]


def test_no_criteria_returns_everything_in_order():
    assert filter_doctors(DOCTORS) == DOCTORS
    assert filter_doctors(DOCTORS, FilterCriteria()) == DOCTORS


def test_empty_list():
    assert filter_doctors([], FilterCriteria(search="x", available_only=True)) == []


def test_search_is_case_insensitive_on_name_or_department():
    assert [d.id for d in filter_doctors(DOCTORS, FilterCriteria(search="REMO"))] == [2]
    assert [d.id for d in filter_doctors(DOCTORS, FilterCriteria(search="หัวใจ"))] == [2]


def test_predicates_are_anded():
    crit = FilterCriteria(gender="ชาย", on_date=date(2025, 9, 23))
    assert [d.id for d in filter_doctors(DOCTORS, crit)] == [1]
    crit = FilterCriteria(gender="หญิง", department="กระดูกและข้อ")
    assert filter_doctors(DOCTORS, crit) == []


def test_time_slot_and_availability():
    assert [d.id for d in filter_doctors(DOCTORS, FilterCriteria(time_slot="10:00-11:00"))] == [2]
    assert [d.id for d in filter_doctors(DOCTORS, FilterCriteria(available_only=True))] == [1, 3]


def test_result_is_ordered_subset():
    result = filter_doctors(DOCTORS, FilterCriteria(on_date=date(2025, 9, 23)))
    positions = [DOCTORS.index(d) for d in result]
    assert positions == sorted(positions)


def test_staged_filters_apply_only_on_commit():
    state = FilterState()
    state.stage(gender="หญิง")
    assert state.results(DOCTORS) == DOCTORS
    assert [d.id for d in state.preview(DOCTORS)] == [3]
    state.apply()
    assert [d.id for d in state.results(DOCTORS)] == [3]
    state.reset()
    assert state.results(DOCTORS) == DOCTORS


def test_stage_validates_dates():
    state = FilterState(department="กระดูกและข้อ")
    staged = state.stage(on_date="2025-09-23")
    assert staged.on_date == date(2025, 9, 23)
    assert staged.department == "กระดูกและข้อ"

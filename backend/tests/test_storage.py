"""Tests for plan persistence and first-run setup."""
import pytest
import redis

from tabilog.errors import PlanNotFound
from tabilog.models import Currency, Expense
from tabilog.storage import (
    DEMO_TITLE,
    INITIALIZED_KEY,
    LEGACY_EXPENSES_KEY,
    LEGACY_ITINERARY_KEY,
    LEGACY_TITLE_KEY,
    PLANS_KEY,
    PlanStore,
    itinerary_key,
)


class BrokenRedis:
    """Redis client whose every call fails, as during an outage."""

    def get(self, key):
        raise redis.ConnectionError("Connection refused")

    def set(self, key, value):
        raise redis.ConnectionError("Connection refused")

    def delete(self, key):
        raise redis.ConnectionError("Connection refused")


def test_memory_backend(store):
    """Test a store without redis reports the memory backend."""
    assert store.backend == 'memory'


def test_first_run_creates_demo_plan(store):
    """Test an empty store is seeded with the demo trip."""
    plans = store.ensure_initialized()

    assert len(plans) == 1
    assert plans[0].title == DEMO_TITLE
    assert plans[0].start_date == '2026-02-03'
    assert store.get(INITIALIZED_KEY) == 'true'

    days = store.get_itinerary(plans[0].id)
    assert [d.id for d in days] == ['day-1', 'day-2', 'day-3']
    assert days[0].weather.is_reference
    assert days[0].location == '台北 ➔ 東京'


def test_initialization_is_not_repeated(store):
    """Test the demo plan is only created once."""
    first = store.ensure_initialized()
    second = store.ensure_initialized()
    assert [p.id for p in first] == [p.id for p in second]


def test_deleting_every_plan_does_not_recreate_demo(store):
    """Test a user who removed all plans gets an empty list back."""
    plan = store.ensure_initialized()[0]
    store.delete_plan(plan.id)

    assert store.ensure_initialized() == []
    assert store.get(itinerary_key(plan.id)) is None


def test_legacy_single_plan_is_migrated(store):
    """Test data from the single-itinerary layout becomes a plan."""
    store.set_json(LEGACY_ITINERARY_KEY, [{'id': 'old-1', 'date': '2025-12-24', 'displayDate': '12/24 (三)',
                                           'location': 'Sapporo', 'activities': []}])
    store.set(LEGACY_TITLE_KEY, '北海道')
    store.set_json(LEGACY_EXPENSES_KEY, [{'id': 'e1', 'date': '2025-12-24', 'amount': 1200,
                                          'currency': 'JPY', 'category': 'Food', 'description': 'Ramen'}])

    plans = store.ensure_initialized()

    assert len(plans) == 1
    assert plans[0].title == '北海道'
    assert plans[0].start_date == '2025-12-24'
    assert [d.location for d in store.get_itinerary(plans[0].id)] == ['Sapporo']
    assert store.get_expenses(plans[0].id)[0].description == 'Ramen'


def test_existing_plans_mark_store_initialized(store):
    """Test plans saved before the flag existed are kept and flagged."""
    store.set_json(PLANS_KEY, [{'id': 'p1', 'title': 'Trip', 'startDate': '2026-01-01'}])

    plans = store.ensure_initialized()

    assert [p.id for p in plans] == ['p1']
    assert store.get(INITIALIZED_KEY) == 'true'


def test_create_plan_starts_with_one_day(store):
    """Test a new plan gets a single placeholder day on its start date."""
    plan = store.create_plan('Okinawa', '2026-07-01')

    days = store.get_itinerary(plan.id)
    assert len(days) == 1
    assert days[0].date == '2026-07-01'
    assert store.get_expenses(plan.id) == []
    assert [p.id for p in store.list_plans()] == [plan.id]


def test_update_plan(store):
    """Test title and subtitle edits are persisted."""
    plan = store.create_plan('Okinawa', '2026-07-01')
    store.update_plan(plan.id, 'Okinawa 2026', 'Beach week')

    saved = store.get_plan(plan.id)
    assert (saved.title, saved.subtitle) == ('Okinawa 2026', 'Beach week')


def test_unknown_plan(store):
    """Test operations on a missing plan raise PlanNotFound."""
    with pytest.raises(PlanNotFound):
        store.get_plan('missing')
    with pytest.raises(PlanNotFound):
        store.get_itinerary('missing')
    with pytest.raises(PlanNotFound):
        store.update_plan('missing', 'x', 'y')
    with pytest.raises(PlanNotFound):
        store.delete_plan('missing')


def test_missing_itinerary_falls_back_to_demo(store):
    """Test a plan whose itinerary key vanished reads the demo itinerary."""
    plan = store.create_plan('Okinawa', '2026-07-01')
    store.delete(itinerary_key(plan.id))

    assert [d.id for d in store.get_itinerary(plan.id)] == ['day-1', 'day-2', 'day-3']


def test_expenses_round_trip(store):
    """Test expenses are saved per plan."""
    plan = store.create_plan('Okinawa', '2026-07-01')
    expense = Expense(id='e1', date='2026-07-01', amount=500, currency=Currency.TWD,
                      category='Transport', description='Bus')
    store.save_expenses(plan.id, [expense])

    assert store.get_expenses(plan.id) == [expense]


def test_invalid_json_reads_as_default(store):
    """Test corrupt stored values are treated as absent."""
    store.set(PLANS_KEY, '{not json')
    assert store.list_plans() == []


def test_redis_errors_fall_back_to_memory():
    """Test a failing redis client does not lose writes."""
    store = PlanStore(redis_client=BrokenRedis())

    assert store.backend == 'redis'
    plan = store.create_plan('Okinawa', '2026-07-01')
    assert store.get_plan(plan.id).title == 'Okinawa'


def test_unknown_stored_condition_reads_as_sunny(store):
    """Test stored weather with an unrecognised condition still loads."""
    plan = store.create_plan('Okinawa', '2026-07-01')
    store.set_json(itinerary_key(plan.id), [{
        'id': 'd1', 'date': '2026-07-01', 'displayDate': '7/1 (三)', 'location': 'Naha',
        'weatherInfo': {'condition': 'Hail', 'tempMin': 24, 'tempMax': 31},
        'activities': [{'id': 'a1', 'time': '10:00', 'title': 'Beach',
                        'weatherInfo': {'condition': None, 'temp': 29}}],
    }])

    day = store.get_itinerary(plan.id)[0]

    assert day.weather.condition == 'Sunny'
    assert (day.weather.temp_min, day.weather.temp_max) == (24, 31)
    assert day.activities[0].weather.condition == 'Sunny'

# backend/tabilog/storage.py
import json
import logging
import os
from datetime import date
from typing import Dict, List, Optional

import redis

from tabilog.errors import PlanNotFound
from tabilog.itinerary import new_day
from tabilog.models import Day, Expense, Plan, days_from_json, days_to_json, generate_id

logger = logging.getLogger(__name__)

PLANS_KEY = 'tabilog_plans'
INITIALIZED_KEY = 'tabilog_initialized'
LEGACY_ITINERARY_KEY = 'tabilog_itinerary'
LEGACY_EXPENSES_KEY = 'tabilog_expenses'
LEGACY_TITLE_KEY = 'tabilog_title'

DEMO_TITLE = '2026 長野草津合掌村旅遊'
DEMO_ITINERARY = [
    {
        'id': 'day-1',
        'date': '2026-02-03',
        'displayDate': '2/3 (二)',
        'location': '台北 ➔ 東京',
        'weatherInfo': {'tempMin': 5, 'tempMax': 12, 'condition': 'Cloudy', 'isReference': True},
        'activities': [
            {
                'id': 'act-1',
                'time': 'TBA',
                'title': '桃園機場第一航廈',
                'type': 'FLIGHT',
                'description': '航班編號 IT200',
                'location': 'Taoyuan International Airport',
                'weatherInfo': {'temp': 18, 'condition': 'Cloudy', 'isReference': True},
            },
            {
                'id': 'act-2',
                'time': 'Evening',
                'title': '住宿：日暮里阿爾蒙特飯店',
                'type': 'HOTEL',
                'location': 'Arakawa City, Tokyo',
                'weatherInfo': {'temp': 8, 'condition': 'Cloudy', 'isReference': True},
            },
        ],
    },
    {
        'id': 'day-2',
        'date': '2026-02-04',
        'displayDate': '2/4 (三)',
        'location': '東京 ➔ 草津',
        'weatherInfo': {'tempMin': -2, 'tempMax': 4, 'condition': 'Snow', 'isReference': True},
        'activities': [
            {
                'id': 'act-3',
                'time': 'Afternoon',
                'title': '草津溫泉 湯畑',
                'type': 'ACTIVITY',
                'location': 'Kusatsu, Gunma',
            },
        ],
    },
    {
        'id': 'day-3',
        'date': '2026-02-05',
        'displayDate': '2/5 (四)',
        'location': '草津',
        'activities': [],
    },
]


def itinerary_key(plan_id: str) -> str:
    return f"tabilog_itinerary_{plan_id}"


def expenses_key(plan_id: str) -> str:
    return f"tabilog_expenses_{plan_id}"


class PlanStore:
    def __init__(self, redis_client=None, use_redis: bool = True):
        self.memory_store = {}
        if redis_client is not None:
            self.redis_client = redis_client
        elif use_redis:
            self.redis_client = self._setup_redis()
        else:
            self.redis_client = None

    def _setup_redis(self):
        try:
            redis_url = os.getenv('REDIS_URL')
            if redis_url:
                client = redis.from_url(redis_url, decode_responses=True, socket_connect_timeout=5, socket_timeout=5)
            else:
                client = redis.Redis(
                    host=os.getenv('REDIS_HOST', 'localhost'),
                    port=int(os.getenv('REDIS_PORT', 6379)),
                    db=int(os.getenv('REDIS_DB', 2)),
                    decode_responses=True,
                    socket_connect_timeout=5,
                    socket_timeout=5
                )
            client.ping()
            logger.info("Redis connected for plan storage")
            return client
        except Exception as e:
            logger.warning(f"Redis not available for plan storage: {e}, using memory store")
            return None

    @property
    def backend(self) -> str:
        return 'redis' if self.redis_client else 'memory'

    # Key-value primitives

    def get(self, key: str) -> Optional[str]:
        if self.redis_client:
            try:
                return self.redis_client.get(key)
            except redis.RedisError as e:
                logger.warning(f"Redis get error: {e}")
        return self.memory_store.get(key)

    def set(self, key: str, value: str) -> None:
        if self.redis_client:
            try:
                self.redis_client.set(key, value)
                return
            except redis.RedisError as e:
                logger.warning(f"Redis set error: {e}")
        self.memory_store[key] = value

    def delete(self, key: str) -> None:
        if self.redis_client:
            try:
                self.redis_client.delete(key)
            except redis.RedisError as e:
                logger.warning(f"Redis delete error: {e}")
        self.memory_store.pop(key, None)

    def get_json(self, key: str, default=None):
        raw = self.get(key)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError as e:
            logger.warning(f"Stored value for {key} is not valid JSON: {e}")
            return default

    def set_json(self, key: str, value) -> None:
        self.set(key, json.dumps(value, ensure_ascii=False))

    # Plans

    def list_plans(self) -> List[Plan]:
        return [Plan.from_dict(item) for item in self.get_json(PLANS_KEY, [])]

    def get_plan(self, plan_id: str) -> Plan:
        for plan in self.list_plans():
            if plan.id == plan_id:
                return plan
        raise PlanNotFound(plan_id)

    def _save_plans(self, plans: List[Plan]) -> None:
        self.set_json(PLANS_KEY, [p.to_dict() for p in plans])

    def create_plan(self, title: str, start_date: str, subtitle: str = 'Planning Mode',
                    itinerary: Optional[List[Day]] = None) -> Plan:
        plan = Plan(id=generate_id(), title=title, subtitle=subtitle, start_date=start_date)
        self.save_itinerary(plan.id, itinerary or [new_day(start_date)])
        self.save_expenses(plan.id, [])
        self._save_plans(self.list_plans() + [plan])
        logger.info(f"Created plan {plan.id}: {title}")
        return plan

    def update_plan(self, plan_id: str, title: str, subtitle: str) -> Plan:
        plans = self.list_plans()
        updated = None
        for index, plan in enumerate(plans):
            if plan.id == plan_id:
                updated = plan.with_details(title, subtitle)
                plans[index] = updated
        if updated is None:
            raise PlanNotFound(plan_id)
        self._save_plans(plans)
        return updated

    def delete_plan(self, plan_id: str) -> None:
        plans = self.list_plans()
        remaining = [p for p in plans if p.id != plan_id]
        if len(remaining) == len(plans):
            raise PlanNotFound(plan_id)
        self._save_plans(remaining)
        self.delete(itinerary_key(plan_id))
        self.delete(expenses_key(plan_id))
        logger.info(f"Deleted plan {plan_id}")

    # Itinerary and expenses

    def get_itinerary(self, plan_id: str) -> List[Day]:
        self.get_plan(plan_id)
        items = self.get_json(itinerary_key(plan_id))
        if items is None:
            items = DEMO_ITINERARY
        return days_from_json(items)

    def save_itinerary(self, plan_id: str, days: List[Day]) -> None:
        self.set_json(itinerary_key(plan_id), days_to_json(days))

    def get_expenses(self, plan_id: str) -> List[Expense]:
        self.get_plan(plan_id)
        return [Expense.from_dict(item) for item in self.get_json(expenses_key(plan_id), [])]

    def save_expenses(self, plan_id: str, expenses: List[Expense]) -> None:
        self.set_json(expenses_key(plan_id), [e.to_dict() for e in expenses])

    # First run

    def ensure_initialized(self) -> List[Plan]:
        plans = self.list_plans()
        initialized = self.get(INITIALIZED_KEY)

        if plans:
            if not initialized:
                self.set(INITIALIZED_KEY, 'true')
            return plans

        # Initialized with no plans means the user deleted them all.
        if initialized:
            return plans

        legacy_itinerary = self.get_json(LEGACY_ITINERARY_KEY)
        if legacy_itinerary is not None:
            plan = self._migrate_legacy(legacy_itinerary)
        else:
            plan = self.create_plan(DEMO_TITLE, DEMO_ITINERARY[0]['date'], subtitle='Trip to Japan',
                                    itinerary=days_from_json(DEMO_ITINERARY))
            logger.info("First run: created demo plan")

        self.set(INITIALIZED_KEY, 'true')
        return [plan]

    def _migrate_legacy(self, legacy_itinerary) -> Plan:
        if not isinstance(legacy_itinerary, list):
            legacy_itinerary = []
        title = self.get(LEGACY_TITLE_KEY) or '我的旅行'
        start_date = legacy_itinerary[0].get('date') if legacy_itinerary else date.today().isoformat()

        plan = Plan(id=generate_id(), title=title, subtitle='Planning Mode', start_date=start_date)
        self.set_json(itinerary_key(plan.id), legacy_itinerary)
        legacy_expenses = self.get_json(LEGACY_EXPENSES_KEY)
        self.set_json(expenses_key(plan.id), legacy_expenses if legacy_expenses is not None else [])
        self._save_plans(self.list_plans() + [plan])
        logger.info(f"Migrated legacy itinerary into plan {plan.id}")
        return plan


plan_store = PlanStore()

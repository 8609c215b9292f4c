# backend/tabilog/models.py
import time
import uuid
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Dict, List, Optional

CONDITIONS = ('Sunny', 'Cloudy', 'Rain', 'Snow')

NEW_DAY_LOCATION = 'New Location'


def generate_id() -> str:
    return uuid.uuid4().hex[:9]


class ActivityType(str, Enum):
    FLIGHT = 'FLIGHT'
    HOTEL = 'HOTEL'
    ACTIVITY = 'ACTIVITY'
    TRANSPORT = 'TRANSPORT'
    FOOD = 'FOOD'


class Currency(str, Enum):
    JPY = 'JPY'
    TWD = 'TWD'


@dataclass(frozen=True)
class WeatherRecord:
    condition: str
    temp_min: Optional[int] = None
    temp_max: Optional[int] = None
    temp: Optional[int] = None
    is_reference: bool = False

    def __post_init__(self):
        if self.condition not in CONDITIONS:
            raise ValueError(f"Unknown weather condition: {self.condition}")

    @classmethod
    def day_range(cls, temp_min: float, temp_max: float, condition: str,
                  is_reference: bool = False) -> 'WeatherRecord':
        return cls(condition=condition, temp_min=round(temp_min), temp_max=round(temp_max),
                   is_reference=is_reference)

    @classmethod
    def point(cls, temp: float, condition: str, is_reference: bool = False) -> 'WeatherRecord':
        return cls(condition=condition, temp=round(temp), is_reference=is_reference)

    @property
    def is_point(self) -> bool:
        return self.temp is not None

    def to_dict(self) -> Dict:
        data = {'condition': self.condition}
        if self.temp is not None:
            data['temp'] = self.temp
        else:
            data['tempMin'] = self.temp_min
            data['tempMax'] = self.temp_max
        if self.is_reference:
            data['isReference'] = True
        return data

    @classmethod
    def from_dict(cls, data: Optional[Dict]) -> Optional['WeatherRecord']:
        if not data:
            return None
        condition = data.get('condition')
        if condition not in CONDITIONS:
            condition = 'Sunny'
        return cls(
            condition=condition,
            temp_min=data.get('tempMin'),
            temp_max=data.get('tempMax'),
            temp=data.get('temp'),
            is_reference=bool(data.get('isReference', False)),
        )


@dataclass
class TodoItem:
    id: str
    text: str
    completed: bool = False

    def to_dict(self) -> Dict:
        return {'id': self.id, 'text': self.text, 'completed': self.completed}

    @classmethod
    def from_dict(cls, data: Dict) -> 'TodoItem':
        return cls(id=data.get('id') or generate_id(), text=data.get('text', ''),
                   completed=bool(data.get('completed', False)))


@dataclass
class Activity:
    id: str
    time: str
    title: str
    type: ActivityType = ActivityType.ACTIVITY
    location: Optional[str] = None
    description: Optional[str] = None
    google_map_link: Optional[str] = None
    notes: Optional[str] = None
    todos: List[TodoItem] = field(default_factory=list)
    weather: Optional[WeatherRecord] = None

    def with_weather(self, weather: Optional[WeatherRecord]) -> 'Activity':
        return replace(self, weather=weather)

    def to_dict(self) -> Dict:
        data = {
            'id': self.id,
            'time': self.time,
            'title': self.title,
            'type': self.type.value,
        }
        optional = {
            'location': self.location,
            'description': self.description,
            'googleMapLink': self.google_map_link,
            'notes': self.notes,
        }
        data.update({k: v for k, v in optional.items() if v is not None})
        if self.todos:
            data['todos'] = [t.to_dict() for t in self.todos]
        if self.weather:
            data['weatherInfo'] = self.weather.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> 'Activity':
        return cls(
            id=data.get('id') or generate_id(),
            time=data.get('time', ''),
            title=data.get('title', ''),
            type=ActivityType(data.get('type', ActivityType.ACTIVITY.value)),
            location=data.get('location'),
            description=data.get('description'),
            google_map_link=data.get('googleMapLink'),
            notes=data.get('notes'),
            todos=[TodoItem.from_dict(t) for t in data.get('todos') or []],
            weather=WeatherRecord.from_dict(data.get('weatherInfo')),
        )


@dataclass
class Day:
    id: str
    date: str
    display_date: str
    location: str
    subtitle: Optional[str] = None
    weather: Optional[WeatherRecord] = None
    activities: List[Activity] = field(default_factory=list)

    def with_weather(self, weather: Optional[WeatherRecord],
                     activities: Optional[List[Activity]] = None) -> 'Day':
        if activities is None:
            activities = list(self.activities)
        return replace(self, weather=weather, activities=activities)

    def with_date(self, date: str, display_date: str) -> 'Day':
        return replace(self, date=date, display_date=display_date)

    def without_weather(self) -> 'Day':
        return replace(self, weather=None,
                       activities=[a.with_weather(None) for a in self.activities])

    def find_activity(self, activity_id: str) -> Optional[Activity]:
        for activity in self.activities:
            if activity.id == activity_id:
                return activity
        return None

    def to_dict(self) -> Dict:
        data = {
            'id': self.id,
            'date': self.date,
            'displayDate': self.display_date,
            'location': self.location,
            'activities': [a.to_dict() for a in self.activities],
        }
        if self.subtitle is not None:
            data['subtitle'] = self.subtitle
        if self.weather:
            data['weatherInfo'] = self.weather.to_dict()
        return data

    @classmethod
    def from_dict(cls, data: Dict) -> 'Day':
        return cls(
            id=data.get('id') or generate_id(),
            date=data['date'],
            display_date=data.get('displayDate', ''),
            location=data.get('location', ''),
            subtitle=data.get('subtitle'),
            weather=WeatherRecord.from_dict(data.get('weatherInfo')),
            activities=[Activity.from_dict(a) for a in data.get('activities') or []],
        )


@dataclass
class Expense:
    id: str
    date: str
    amount: float
    currency: Currency
    category: str
    description: str

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'date': self.date,
            'amount': self.amount,
            'currency': self.currency.value,
            'category': self.category,
            'description': self.description,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Expense':
        return cls(
            id=data.get('id') or generate_id(),
            date=data['date'],
            amount=float(data['amount']),
            currency=Currency(data.get('currency', Currency.JPY.value)),
            category=data.get('category', 'Food'),
            description=data.get('description', ''),
        )


@dataclass
class Plan:
    id: str
    title: str
    start_date: str
    subtitle: str = 'Planning Mode'
    created_at: int = field(default_factory=lambda: int(time.time() * 1000))

    def with_details(self, title: str, subtitle: str) -> 'Plan':
        return replace(self, title=title, subtitle=subtitle)

    def to_dict(self) -> Dict:
        return {
            'id': self.id,
            'title': self.title,
            'subtitle': self.subtitle,
            'startDate': self.start_date,
            'createdAt': self.created_at,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> 'Plan':
        return cls(
            id=data['id'],
            title=data.get('title', ''),
            subtitle=data.get('subtitle', 'Planning Mode'),
            start_date=data.get('startDate', ''),
            created_at=int(data.get('createdAt') or 0),
        )


def days_from_json(items: List[Dict]) -> List[Day]:
    return [Day.from_dict(item) for item in items]


def days_to_json(days: List[Day]) -> List[Dict]:
    return [day.to_dict() for day in days]

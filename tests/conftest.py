"""Pytest configuration and fixtures for booking engine tests."""
from datetime import date, datetime, time, timedelta

import pytest

from core.restaurant_config import (
    BusinessCalendar,
    DayHours,
    ReservationPolicy,
    RestaurantConfig,
    get_default_restaurant_config,
)
from db.session import create_db_engine, create_session_factory, drop_db, init_db
from domain.models import ContactInfo
from services.reservation_service import ReservationService


# Monday, outside any DST change in Europe/Bratislava
MONDAY = date(2026, 3, 9)


class FixedClock:
    """Clock returning a settable aware datetime."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def set(self, day: date, at: time, tz) -> None:
        self.now = tz.localize(datetime.combine(day, at))

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture(scope="function")
def config():
    """Default restaurant configuration (Mon-Thu 11-22, Fri 11-23, Sat 10-23, Sun 10-22)."""
    return get_default_restaurant_config()


@pytest.fixture(scope="function")
def short_day_config():
    """Every day 18:00-19:30, so exactly one 90-minute slot."""
    return RestaurantConfig(
        calendar=BusinessCalendar.uniform(DayHours(open=time(18, 0), close=time(19, 30))),
        policy=ReservationPolicy(),
    ).validate()


@pytest.fixture(scope="function")
def clock(config):
    """Monday 2 March 2026, 09:00 restaurant time; a week before MONDAY."""
    return FixedClock(config.tz.localize(datetime(2026, 3, 2, 9, 0)))


@pytest.fixture(scope="function")
def db_engine():
    """Create an in-memory SQLite database engine for testing."""
    engine = create_db_engine("sqlite://", echo=False)
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def file_engine(tmp_path):
    """File-backed SQLite engine for tests that book from several threads."""
    engine = create_db_engine(f"sqlite:///{tmp_path / 'booking.db'}", echo=False)
    init_db(bind=engine)
    yield engine
    drop_db(bind=engine)
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine):
    """Session factory bound to the in-memory database."""
    return create_session_factory(db_engine)


@pytest.fixture(scope="function")
def service(session_factory, config, clock):
    """Reservation service creating pending reservations."""
    return ReservationService(session_factory, config, clock=clock)


@pytest.fixture(scope="function")
def auto_service(session_factory, config, clock):
    """Reservation service creating confirmed reservations."""
    return ReservationService(session_factory, config, auto_confirm=True, clock=clock)


@pytest.fixture(scope="function")
def add_tables(service):
    """Factory fixture adding tables by capacity; returns their records in order."""
    def _add(*capacities):
        existing = len(service.inventory.list_tables(include_inactive=True))
        return [
            service.inventory.add_table(f"T{existing + i + 1}", capacity)
            for i, capacity in enumerate(capacities)
        ]
    return _add


@pytest.fixture(scope="function")
def contact():
    """Provide sample guest contact details."""
    return ContactInfo(name="Jana Novakova", email="jana@example.com", phone="+421 900 123 456")


@pytest.fixture(scope="function")
def book(auto_service, contact):
    """Factory fixture creating confirmed reservations on MONDAY."""
    def _book(at=time(19, 0), party_size=2, day=MONDAY, **kwargs):
        return auto_service.create_reservation(day, at, party_size, contact, **kwargs)
    return _book

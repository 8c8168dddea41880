from datetime import datetime, timedelta

import pytest
from sqlalchemy.orm import sessionmaker

from taskhub import models  # noqa: F401
from taskhub.database import Base, make_engine
from taskhub.enums import FieldType, Role
from taskhub.models import User
from taskhub.schemas import Actor, FormField, TaskCreate, TaskForm
from taskhub.task_service import TaskService
from taskhub.user_service import UserService


class Clock:
    """Deterministic clock that moves one second per reading"""

    def __init__(self, start):
        self.now = start

    def __call__(self):
        current = self.now
        self.now += timedelta(seconds=1)
        return current

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


def make_user(db, name, role, active=True, department=None):
    user = User(
        name=name,
        email=f"{name.lower().replace(' ', '.')}@example.org",
        role=role,
        is_active=active,
        department=department,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def actor_for(user):
    return Actor(user_id=user.id, role=user.role, name=user.name)


def survey_form():
    return TaskForm(
        title="Distribution report",
        description="Report on the food parcel distribution",
        fields=[
            FormField(id="site", type=FieldType.text, label="Site", required=True),
            FormField(id="families", type=FieldType.number, label="Families served", required=True),
            FormField(id="visit_date", type=FieldType.date, label="Visit date", required=True),
            FormField(id="notes", type=FieldType.textarea, label="Notes"),
        ],
    )


def complete_response():
    return {"site": "Khan Younis", "families": 120, "visit_date": "2026-03-01"}


@pytest.fixture
def engine():
    engine = make_engine("sqlite://")
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    Session = sessionmaker(autoflush=False, bind=engine)
    session = Session()
    yield session
    session.close()


@pytest.fixture
def clock():
    return Clock(datetime(2026, 3, 1, 9, 0, 0))


@pytest.fixture
def service(db, clock):
    return TaskService(db, clock=clock)


@pytest.fixture
def user_service(db, clock):
    return UserService(db, clock=clock)


@pytest.fixture
def gm(db):
    return make_user(db, "Mona Haddad", Role.general_manager)


@pytest.fixture
def officer(db):
    return make_user(db, "Omar Said", Role.field_officer, department="Field")


@pytest.fixture
def other_officer(db):
    return make_user(db, "Lina Farah", Role.field_officer, department="Field")


@pytest.fixture
def basic_user(db):
    return make_user(db, "Sami Basic", Role.user)


@pytest.fixture
def coordinator(db):
    return make_user(db, "Rana Coord", Role.project_coordinator)


@pytest.fixture
def new_task(service, gm, officer):
    """Create a PENDING task from the GM to the field officer"""
    def _create(**overrides):
        data = {
            "title": "Report on parcel distribution",
            "description": "Visit the site and fill in the distribution report",
            "assigned_to": officer.id,
            "priority": "high",
            "form": survey_form(),
            "category": "relief",
            "tags": ["food", "gaza"],
        }
        data.update(overrides)
        return service.create_task(actor_for(gm), TaskCreate(**data))
    return _create

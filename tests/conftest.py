from datetime import date, timedelta

import pytest
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from models.database import Base, build_engine
from models import entities  # noqa: F401 - register tables
from models.entities import (
    Department, Location, Reader, AccessProfile, ProfileReader, AccessRule
)
from core.lifecycle import EmployeeLifecycle
from core.rule_engine import AccessRuleEngine


@pytest.fixture
def db_engine():
    engine = build_engine("sqlite://", poolclass=StaticPool)
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture
def session(db_engine):
    Session = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = Session()
    yield session
    session.rollback()
    session.close()


@pytest.fixture
def org(session):
    """
    Two sites. ITS has rules at both; Finance has a rule only at Boston.
    """
    depts = {name: Department(name=name) for name in ("ITS", "Finance", "HR")}
    locs = {name: Location(name=name) for name in ("Boston", "Jakarta")}
    session.add_all(list(depts.values()) + list(locs.values()))
    session.flush()

    readers = {
        "BOS-LOBBY": Reader(name="BOS-LOBBY", location_id=locs["Boston"].id),
        "BOS-SERVER-ROOM": Reader(name="BOS-SERVER-ROOM", location_id=locs["Boston"].id),
        "JKT-LOBBY": Reader(name="JKT-LOBBY", location_id=locs["Jakarta"].id),
    }
    session.add_all(readers.values())
    session.flush()

    profiles = {
        "Boston General": AccessProfile(name="General", location_id=locs["Boston"].id),
        "Boston Server Room": AccessProfile(name="Server Room", location_id=locs["Boston"].id),
        "Boston Finance": AccessProfile(name="Finance Office", location_id=locs["Boston"].id),
        "Jakarta General": AccessProfile(name="General", location_id=locs["Jakarta"].id),
    }
    session.add_all(profiles.values())
    session.flush()

    links = [
        ("Boston General", "BOS-LOBBY"),
        ("Boston Server Room", "BOS-LOBBY"),
        ("Boston Server Room", "BOS-SERVER-ROOM"),
        ("Boston Finance", "BOS-LOBBY"),
        ("Jakarta General", "JKT-LOBBY"),
    ]
    for profile, reader in links:
        session.add(ProfileReader(profile_id=profiles[profile].id, reader_id=readers[reader].id))

    rules = [
        ("ITS", "Boston", "Boston General"),
        ("ITS", "Boston", "Boston Server Room"),
        ("Finance", "Boston", "Boston General"),
        ("Finance", "Boston", "Boston Finance"),
        ("ITS", "Jakarta", "Jakarta General"),
    ]
    for dept, loc, profile in rules:
        session.add(AccessRule(
            department_id=depts[dept].id,
            location_id=locs[loc].id,
            profile_id=profiles[profile].id
        ))
    session.flush()

    return {
        "departments": depts,
        "locations": locs,
        "readers": readers,
        "profiles": profiles,
    }


@pytest.fixture
def rule_engine(session):
    return AccessRuleEngine(session)


@pytest.fixture
def lifecycle(session, org):
    return EmployeeLifecycle(session)


@pytest.fixture
def next_year():
    return date.today() + timedelta(days=365)

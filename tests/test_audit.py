from datetime import date, datetime, timedelta

import pytest

from models.entities import SwipeEvent, SwipeOutcome
from core.audit import SwipeAudit


@pytest.fixture
def history(session, lifecycle, org):
    """John (ITS) and Maria (Finance) in Boston; Oliver's contract has ended."""
    today = date.today()
    john = lifecycle.hire("John", "Smith", "ITS", "Boston", today + timedelta(days=90)).employee
    maria = lifecycle.hire("Maria", "Garcia", "Finance", "Boston", today + timedelta(days=90)).employee
    oliver = lifecycle.hire("Oliver", "Brown", "ITS", "Jakarta", today - timedelta(days=1)).employee

    now = datetime.utcnow()
    swipes = [
        (john, "BOS-SERVER-ROOM", 3),
        (maria, "BOS-SERVER-ROOM", 2),
        (maria, "BOS-LOBBY", 2),
        (oliver, "JKT-LOBBY", 1),
    ]
    for employee, reader_name, hours_ago in swipes:
        reader = org["readers"][reader_name]
        at = now - timedelta(hours=hours_ago)
        outcome, _ = lifecycle.engine.can_use_reader(employee, reader, at)
        session.add(SwipeEvent(employee_id=employee.id, reader_id=reader.id, swiped_at=at, outcome=outcome))
    # An old denial outside the default window
    session.add(SwipeEvent(
        employee_id=maria.id,
        reader_id=org["readers"]["BOS-SERVER-ROOM"].id,
        swiped_at=now - timedelta(days=3),
        outcome=SwipeOutcome.DENIED,
    ))
    session.flush()
    return {"john": john, "maria": maria, "oliver": oliver}


def test_swipes_join_placement_newest_first(session, history):
    rows = SwipeAudit(session).get_swipes()

    assert len(rows) == 5
    assert rows[0]['identity_code'] == "OB100001"
    assert rows[0]['location'] == "Jakarta"
    assert rows[0]['department'] == "ITS"
    assert rows[0]['outcome'] == "DENIED"
    assert rows[-1]['employee_name'] == "Maria Garcia"


def test_swipes_filter_by_outcome_and_employee(session, history):
    audit = SwipeAudit(session)

    granted = audit.get_swipes(outcome=SwipeOutcome.GRANTED)
    marias = audit.get_swipes(employee_id=history["maria"].id)

    assert {(r['identity_code'], r['reader']) for r in granted} == {
        ("JS100001", "BOS-SERVER-ROOM"),
        ("MG100001", "BOS-LOBBY"),
    }
    assert len(marias) == 3


def test_swipes_filter_by_location_and_window(session, history, org):
    audit = SwipeAudit(session)

    boston = audit.get_swipes(location_id=org["locations"]["Boston"].id)
    recent = audit.get_swipes(start_time=datetime.utcnow() - timedelta(days=1))

    assert all(r['location'] == "Boston" for r in boston)
    assert len(boston) == 4
    assert len(recent) == 4


def test_access_status_recomputes_validity(session, history):
    rows = {r['identity_code']: r for r in SwipeAudit(session).access_status()}

    assert rows["JS100001"]['access_valid'] is True
    assert rows["JS100001"]['active_grants'] == 2
    assert rows["OB100001"]['state'] == "EXPIRED"
    assert rows["OB100001"]['access_valid'] is False

    later = {r['identity_code']: r for r in SwipeAudit(session).access_status(date.today() + timedelta(days=91))}
    assert later["JS100001"]['state'] == "EXPIRED"


def test_denial_summary_counts_recent_denials(session, history):
    assert SwipeAudit(session).denial_summary(hours=24) == {
        "BOS-SERVER-ROOM": 1,
        "JKT-LOBBY": 1,
    }
    assert SwipeAudit(session).denial_summary(hours=24 * 7)["BOS-SERVER-ROOM"] == 2

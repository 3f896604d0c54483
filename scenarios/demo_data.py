"""
Demo Data Loader
================

Creates a small multi-site organization for demonstrating the rule
engine:

- Three locations (Boston, Jakarta, London) with readers and profiles
- Department x Location default access rules, with one pairing
  (Finance at Jakarta) deliberately left without a rule
- Employees hired through the lifecycle layer, so identity codes and
  default grants come from the engine, not from this file
- A short swipe history, standing in for the reader ingestion path
"""

from datetime import date, datetime, timedelta

from models.database import reset_db, get_session
from models.entities import (
    Department, Location, Reader, AccessProfile, ProfileReader,
    AccessRule, SwipeEvent
)
from core.lifecycle import EmployeeLifecycle


DEPARTMENTS = ["ITS", "Finance", "HR", "Facilities"]
LOCATIONS = ["Boston", "Jakarta", "London"]

# reader name -> location
READERS = {
    "BOS-LOBBY": "Boston",
    "BOS-SERVER-ROOM": "Boston",
    "BOS-FINANCE-OFFICE": "Boston",
    "BOS-PLANT-ROOM": "Boston",
    "JKT-LOBBY": "Jakarta",
    "JKT-DATA-CENTER": "Jakarta",
    "LON-LOBBY": "London",
}

# (profile name, location) -> readers it opens
PROFILES = {
    ("General", "Boston"): ["BOS-LOBBY"],
    ("Server Room", "Boston"): ["BOS-LOBBY", "BOS-SERVER-ROOM"],
    ("Finance Office", "Boston"): ["BOS-LOBBY", "BOS-FINANCE-OFFICE"],
    ("Plant", "Boston"): ["BOS-LOBBY", "BOS-PLANT-ROOM"],
    ("General", "Jakarta"): ["JKT-LOBBY"],
    ("Data Center", "Jakarta"): ["JKT-LOBBY", "JKT-DATA-CENTER"],
    ("General", "London"): ["LON-LOBBY"],
}

# (department, location) -> default profiles
RULES = {
    ("ITS", "Boston"): ["General", "Server Room"],
    ("Finance", "Boston"): ["General", "Finance Office"],
    ("HR", "Boston"): ["General"],
    ("Facilities", "Boston"): ["General", "Plant"],
    ("ITS", "Jakarta"): ["General", "Data Center"],
    ("ITS", "London"): ["General"],
    ("HR", "London"): ["General"],
}

# first, last, department, location, contract length in days (negative = expired)
EMPLOYEES = [
    ("John", "Smith", "ITS", "Boston", 365),
    ("Jane", "Sato", "ITS", "Boston", 730),
    ("Maria", "Garcia", "Finance", "Boston", 365),
    ("Dewi", "Lestari", "HR", "Boston", 180),
    ("Budi", "Santoso", "ITS", "Jakarta", 365),
    ("Siti", "Rahma", "Finance", "Jakarta", 365),
    ("Oliver", "Brown", "ITS", "London", -30),
]

# identity code is looked up after hiring; (employee index, reader, hours ago)
SWIPES = [
    (0, "BOS-LOBBY", 6),
    (0, "BOS-SERVER-ROOM", 5),
    (2, "BOS-SERVER-ROOM", 4),
    (2, "BOS-FINANCE-OFFICE", 4),
    (4, "JKT-DATA-CENTER", 3),
    (5, "JKT-LOBBY", 2),
    (6, "LON-LOBBY", 1),
]


def load_demo_data():
    """
    Load demo data, replacing whatever the database held.

    Returns:
        Dictionary of counts for display
    """
    reset_db()

    with get_session() as session:
        departments = {name: Department(name=name) for name in DEPARTMENTS}
        locations = {name: Location(name=name) for name in LOCATIONS}
        session.add_all(list(departments.values()) + list(locations.values()))
        session.flush()

        readers = {
            name: Reader(name=name, location_id=locations[loc].id)
            for name, loc in READERS.items()
        }
        session.add_all(readers.values())
        session.flush()

        profiles = {}
        for (name, loc), reader_names in PROFILES.items():
            profile = AccessProfile(name=name, location_id=locations[loc].id)
            session.add(profile)
            session.flush()
            for reader_name in reader_names:
                session.add(ProfileReader(profile_id=profile.id, reader_id=readers[reader_name].id))
            profiles[(name, loc)] = profile
        session.flush()

        rule_count = 0
        for (dept, loc), profile_names in RULES.items():
            for profile_name in profile_names:
                session.add(AccessRule(
                    department_id=departments[dept].id,
                    location_id=locations[loc].id,
                    profile_id=profiles[(profile_name, loc)].id
                ))
                rule_count += 1
        session.flush()

        # ================================================================
        # Hire through the lifecycle so the rule engine runs
        # ================================================================
        lifecycle = EmployeeLifecycle(session)
        today = date.today()
        hired = []
        pending = []
        for first, last, dept, loc, days in EMPLOYEES:
            result = lifecycle.hire(
                first, last, departments[dept], locations[loc],
                contract_expires=today + timedelta(days=days)
            )
            hired.append(result.employee)
            if result.pending_review:
                pending.append(result.employee.identity_code)

        # ================================================================
        # Swipe history (normally written by reader ingestion)
        # ================================================================
        now = datetime.utcnow()
        for index, reader_name, hours_ago in SWIPES:
            employee = hired[index]
            reader = readers[reader_name]
            swiped_at = now - timedelta(hours=hours_ago)
            outcome, _ = lifecycle.engine.can_use_reader(employee, reader, swiped_at)
            session.add(SwipeEvent(
                employee_id=employee.id,
                reader_id=reader.id,
                swiped_at=swiped_at,
                outcome=outcome
            ))
        session.flush()

        return {
            'departments': len(departments),
            'locations': len(locations),
            'readers': len(readers),
            'profiles': len(profiles),
            'rules': rule_count,
            'employees': len(hired),
            'pending_review': pending,
            'swipes': len(SWIPES),
        }


if __name__ == "__main__":
    print(load_demo_data())

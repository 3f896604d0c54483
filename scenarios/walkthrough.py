"""
Rule Engine Walkthroughs
========================

Runs the engine against the demo organization and shows expected vs
actual outcomes. Every scenario works inside a transaction that is
rolled back, so the demo data is left untouched.

Scenarios:
1. Identity Codes - generation, validation and rename handling
2. Default Access - rule lookups, idempotence, missing rules
3. Validity - contract expiration and reader decisions
"""

from datetime import date, timedelta

from rich.console import Console
from rich.table import Table
from rich.panel import Panel
from rich import box

from models import database
from models.entities import Employee, Reader, SwipeOutcome
from core.errors import InvalidFormatError
from core.lifecycle import EmployeeLifecycle
from core.rule_engine import AccessRuleEngine

console = Console()


def run_scenarios(scenario_name: str = "all"):
    """
    Run rule engine walkthroughs.

    Args:
        scenario_name: Which scenario to run (identity, access, validity, all)
    """
    scenarios = {
        'identity': run_identity_scenario,
        'access': run_access_scenario,
        'validity': run_validity_scenario,
    }

    console.print(Panel(
        "[bold]Badge Access Rule Engine Scenarios[/bold]\n\n"
        "Each scenario runs against the demo organization inside a\n"
        "transaction that is rolled back afterwards.",
        title="Walkthrough",
        box=box.DOUBLE
    ))

    if scenario_name == "all":
        for func in scenarios.values():
            console.print(f"\n[bold cyan]{'='*60}[/bold cyan]")
            _in_rollback(func)
    elif scenario_name in scenarios:
        _in_rollback(scenarios[scenario_name])
    else:
        console.print(f"[red]Unknown scenario: {scenario_name}[/red]")
        console.print(f"Available: {', '.join(scenarios.keys())}, all")


def _in_rollback(func):
    session = database.SessionLocal()
    try:
        func(session)
    finally:
        session.rollback()
        session.close()


def run_identity_scenario(session):
    """
    Scenario: Identity Codes

    New hires get the next code under their initials; malformed codes are
    rejected; renames keep the suffix.
    """
    console.print(Panel(
        "[bold]Scenario: Identity Codes[/bold]\n\n"
        "Codes are two initials plus a six-digit sequence scoped to the initials.",
        title="Identity Scenario",
        box=box.ROUNDED
    ))

    lifecycle = EmployeeLifecycle(session)
    expires = date.today() + timedelta(days=365)
    cases = []

    first = lifecycle.hire("Jack", "Stone", "HR", "Boston", expires).employee
    second = lifecycle.hire("Julia", "Sanders", "HR", "Boston", expires).employee
    cases.append(("Hire Jack Stone", "next JS code", first.identity_code,
                  first.code_prefix == "JS"))
    cases.append(("Hire Julia Sanders", "following JS code", second.identity_code,
                  second.code_sequence == first.code_sequence + 1))

    for bad in ("J1100004", "js100004", "JSM10004"):
        try:
            lifecycle.hire("Jo", "Sun", "HR", "Boston", expires, identity_code=bad)
            cases.append((f"Supply {bad}", "InvalidFormat", "accepted", False))
        except InvalidFormatError:
            cases.append((f"Supply {bad}", "InvalidFormat", "InvalidFormat", True))

    old_code = first.identity_code
    same = lifecycle.rename(first, "Jack", "Sterling")
    cases.append(("Rename to Jack Sterling", old_code, same, same == old_code))

    changed = lifecycle.rename(first, "Jack", "Miller")
    cases.append(("Rename to Jack Miller", "JM + same suffix", changed,
                  changed == "JM" + old_code[2:]))

    _show(cases, "Identity Code Tests")


def run_access_scenario(session):
    """
    Scenario: Default Access

    Rules grant profiles on hire, a second run adds nothing, and a pairing
    without a rule is flagged for review instead of failing the hire.
    """
    console.print(Panel(
        "[bold]Scenario: Default Access Assignment[/bold]\n\n"
        "Department x Location rules decide the profiles a new hire receives.",
        title="Access Scenario",
        box=box.ROUNDED
    ))

    lifecycle = EmployeeLifecycle(session)
    expires = date.today() + timedelta(days=365)
    cases = []

    result = lifecycle.hire("Ana", "Lima", "ITS", "Boston", expires)
    names = sorted(g.profile.name for g in result.grants)
    cases.append(("ITS at Boston", "General, Server Room", ", ".join(names),
                  names == ["General", "Server Room"]))

    again = lifecycle.engine.assign_default_access(result.employee)
    cases.append(("Assign again", "0 new grants", f"{len(again)} new grants", len(again) == 0))

    pending = lifecycle.hire("Rina", "Wijaya", "Finance", "Jakarta", expires)
    cases.append(("Finance at Jakarta", "pending review",
                  "pending review" if pending.pending_review else "granted",
                  pending.pending_review and not pending.employee.grants))

    moved = lifecycle.relocate(result.employee, location="Jakarta")
    active = sorted(g.profile.name for g in result.employee.grants if g.revoked_at is None)
    cases.append(("Relocate to Jakarta", "General, Data Center", ", ".join(active),
                  active == ["Data Center", "General"] and not moved.pending_review))

    _show(cases, "Default Access Tests")


def run_validity_scenario(session):
    """
    Scenario: Validity and Reader Decisions

    Access is valid through the contract expiration date; readers open only
    for profiles that include them.
    """
    console.print(Panel(
        "[bold]Scenario: Access Validity[/bold]\n\n"
        "Validity is recomputed from the expiration date on every check.",
        title="Validity Scenario",
        box=box.ROUNDED
    ))

    engine = AccessRuleEngine(session)
    cases = []

    checks = [
        ("John", "Smith", "BOS-SERVER-ROOM", SwipeOutcome.GRANTED),
        ("Maria", "Garcia", "BOS-SERVER-ROOM", SwipeOutcome.DENIED),
        ("Budi", "Santoso", "JKT-DATA-CENTER", SwipeOutcome.GRANTED),
        ("Oliver", "Brown", "LON-LOBBY", SwipeOutcome.DENIED),
    ]
    for first, last, reader_name, expected in checks:
        employee = session.query(Employee).filter(
            Employee.first_name == first, Employee.last_name == last
        ).first()
        reader = session.query(Reader).filter(Reader.name == reader_name).first()
        if not employee or not reader:
            cases.append((f"{first} {last} @ {reader_name}", expected.value, "not found", False))
            continue
        outcome, reason = engine.can_use_reader(employee, reader)
        cases.append((f"{first} {last} @ {reader_name}", expected.value,
                      f"{outcome.value} ({reason})", outcome == expected))

    john = session.query(Employee).filter(Employee.first_name == "John").first()
    if john:
        on_day = engine.is_access_currently_valid(john, john.contract_expires)
        day_after = engine.is_access_currently_valid(john, john.contract_expires + timedelta(days=1))
        cases.append(("Valid on expiration day", "True", str(on_day), on_day is True))
        cases.append(("Valid day after expiration", "False", str(day_after), day_after is False))

    _show(cases, "Validity Tests")


def _show(cases, title):
    """
    Display a list of (case, expected, actual, passed) rows.

    Args:
        cases: Rows to display
        title: Title for the results table
    """
    table = Table(title=title, box=box.ROUNDED)
    table.add_column("Case", style="cyan")
    table.add_column("Expected")
    table.add_column("Actual")
    table.add_column("Result")

    passed = sum(1 for case in cases if case[3])
    for case, expected, actual, ok in cases:
        result = "[green]PASS[/green]" if ok else "[red]FAIL[/red]"
        table.add_row(case, expected, actual[:45], result)

    console.print(table)
    console.print(f"\nResults: [green]{passed} passed[/green], [red]{len(cases) - passed} failed[/red]")


if __name__ == "__main__":
    run_scenarios("all")

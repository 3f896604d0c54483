"""
Badge Access System - Command Line Interface
============================================

Administrative front end for the badge access rule engine.

Features:
- Employee onboarding, renames and relocations (rules run automatically)
- Default access rule and profile inspection
- Access validity and reader checks
- Swipe audit views

Built with Typer and Rich.
"""

import logging
from datetime import date
from typing import Optional

import typer
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table
from rich.panel import Panel
from rich.tree import Tree
from rich import box

from core.config import settings
from core.errors import AccessRuleError

# Initialize CLI app and console
app = typer.Typer(
    name="badge-access",
    help="Badge Access System - identity codes and default access rules",
    add_completion=False
)

console = Console()

# Sub-commands
employees_app = typer.Typer(help="Manage employees")
rules_app = typer.Typer(help="Manage default access rules")
profiles_app = typer.Typer(help="Inspect access profiles")
grants_app = typer.Typer(help="Manage access grants")
swipes_app = typer.Typer(help="View the swipe audit trail")

app.add_typer(employees_app, name="employees")
app.add_typer(rules_app, name="rules")
app.add_typer(profiles_app, name="profiles")
app.add_typer(grants_app, name="grants")
app.add_typer(swipes_app, name="swipes")


def get_session():
    """Get a database session."""
    from models.database import get_session
    return get_session()


def configure_logging(verbose: bool = False):
    """Route log records through Rich; --verbose forces INFO."""
    level = logging.INFO if verbose else getattr(logging, settings.log_level, logging.WARNING)
    logging.basicConfig(
        level=level,
        format="%(name)s: %(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
        force=True
    )


def fail(message: str):
    console.print(f"[red]{message}[/red]")
    raise typer.Exit(code=1)


def parse_date(value: str, option: str) -> date:
    try:
        return date.fromisoformat(value)
    except ValueError:
        fail(f"{option} must be a date in YYYY-MM-DD form, got '{value}'")


def find_employee(session, identity_code: str):
    from core.store import AccessStore
    employee = AccessStore(session).get_employee_by_code(identity_code)
    if not employee:
        fail(f"Employee '{identity_code}' not found")
    return employee


def print_banner():
    """Display application banner."""
    banner = """
    ╔═══════════════════════════════════════════════════════════╗
    ║                 BADGE ACCESS SYSTEM                       ║
    ║                                                           ║
    ║     Identity codes + default access by department/site    ║
    ╚═══════════════════════════════════════════════════════════╝
    """
    console.print(Panel(banner, style="bold blue"))


# ============================================================================
# Database Commands
# ============================================================================

@app.command()
def init():
    """Initialize the database with schema."""
    from models.database import init_db
    init_db()
    console.print("[green]Database initialized successfully![/green]")


@app.command()
def reset(yes: bool = typer.Option(False, "--yes", "-y", help="Skip confirmation")):
    """Reset database (WARNING: destroys all data, swipe history included)."""
    if yes or typer.confirm("This will delete all data. Are you sure?"):
        from models.database import reset_db
        reset_db()
        console.print("[yellow]Database reset complete.[/yellow]")


@app.command()
def demo():
    """Load the demo organization (replaces existing data)."""
    from scenarios import load_demo_data
    counts = load_demo_data()
    console.print("[green]Demo data loaded successfully![/green]")
    console.print(
        f"  {counts['employees']} employees, {counts['locations']} locations, "
        f"{counts['readers']} readers, {counts['profiles']} profiles, {counts['rules']} rules"
    )
    if counts['pending_review']:
        console.print(f"  [yellow]Pending access review: {', '.join(counts['pending_review'])}[/yellow]")
    console.print("\nTry these commands to explore:")
    console.print("  [cyan]python main.py employees list[/cyan]")
    console.print("  [cyan]python main.py rules list[/cyan]")
    console.print("  [cyan]python main.py employees check JS100001 --reader BOS-SERVER-ROOM[/cyan]")


@app.command()
def scenario(
    scenario_name: str = typer.Argument("all", help="Scenario to run: identity, access, validity, all")
):
    """Run rule engine walkthroughs against the demo data."""
    from scenarios import run_scenarios
    run_scenarios(scenario_name)


# ============================================================================
# Employee Commands
# ============================================================================

@employees_app.command("list")
def list_employees(
    as_of: str = typer.Option(None, "--as-of", help="Evaluate validity on this date (YYYY-MM-DD)")
):
    """List employees with their current access state."""
    from core.audit import SwipeAudit

    when = parse_date(as_of, "--as-of") if as_of else date.today()

    with get_session() as session:
        rows = SwipeAudit(session).access_status(when)

        table = Table(title=f"Employees (as of {when.isoformat()})", box=box.ROUNDED)
        table.add_column("Code", style="cyan", no_wrap=True)
        table.add_column("Name", style="green")
        table.add_column("Department")
        table.add_column("Location")
        table.add_column("Contract Ends")
        table.add_column("Grants", justify="right")
        table.add_column("Access", justify="center")

        for row in rows:
            access = "[green]Valid[/green]" if row['access_valid'] else f"[red]{row['state'].title()}[/red]"
            if row['state'] == "ACTIVE" and not row['access_valid']:
                access = "[yellow]No grants[/yellow]"
            table.add_row(
                row['identity_code'],
                row['employee_name'],
                row['department'],
                row['location'],
                row['contract_expires'].isoformat(),
                str(row['active_grants']),
                access
            )

        console.print(table)


@employees_app.command("hire")
def hire_employee(
    first_name: str = typer.Option(..., "--first", help="First name"),
    last_name: str = typer.Option(..., "--last", help="Last name"),
    department: str = typer.Option(..., "--department", "-d", help="Department name"),
    location: str = typer.Option(..., "--location", "-l", help="Location name"),
    contract_expires: str = typer.Option(..., "--expires", "-e", help="Contract end date (YYYY-MM-DD)"),
    identity_code: str = typer.Option(None, "--code", help="Proposed identity code")
):
    """Hire an employee: validate/generate the code and assign default access."""
    from core.lifecycle import EmployeeLifecycle

    expires = parse_date(contract_expires, "--expires")

    try:
        with get_session() as session:
            result = EmployeeLifecycle(session).hire(
                first_name, last_name, department, location, expires,
                identity_code=identity_code
            )
            code = result.employee.identity_code
            granted = [g.profile.name for g in result.grants]
    except AccessRuleError as e:
        fail(str(e))

    console.print(f"[green]Hired {first_name} {last_name} as {code}[/green]")
    if result.pending_review:
        console.print(f"[yellow]Pending access review: {result.reason}[/yellow]")
    else:
        console.print(f"Granted profiles: {', '.join(granted) or 'none (already held)'}")


@employees_app.command("show")
def show_employee(identity_code: str = typer.Argument(..., help="Identity code")):
    """Show employee details and grants."""
    from core.rule_engine import AccessRuleEngine

    with get_session() as session:
        employee = find_employee(session, identity_code)
        engine = AccessRuleEngine(session)
        state = engine.access_state(employee)

        info = f"""
[bold]Identity Code:[/bold] {employee.identity_code}
[bold]Name:[/bold] {employee.full_name}
[bold]Department:[/bold] {employee.department.name}
[bold]Location:[/bold] {employee.location.name}
[bold]Contract Ends:[/bold] {employee.contract_expires.isoformat()}
[bold]State:[/bold] {'[green]ACTIVE[/green]' if state.value == 'ACTIVE' else '[red]EXPIRED[/red]'}
"""
        console.print(Panel(info, title="Employee Information", box=box.ROUNDED))

        if employee.grants:
            tree = Tree("[bold]Access Grants[/bold]")
            for grant in employee.grants:
                if grant.revoked_at is None:
                    tree.add(f"[cyan]{grant.profile.name}[/cyan] (granted by {grant.granted_by})")
                else:
                    tree.add(f"[dim]{grant.profile.name} (revoked {grant.revoked_at:%Y-%m-%d}, {grant.revoked_reason or 'manual'})[/dim]")
            console.print(tree)
        else:
            console.print("[yellow]No access grants[/yellow]")


@employees_app.command("rename")
def rename_employee(
    identity_code: str = typer.Argument(..., help="Identity code"),
    first_name: str = typer.Option(..., "--first", help="New first name"),
    last_name: str = typer.Option(..., "--last", help="New last name")
):
    """Rename an employee; the identity code follows the new initials."""
    from core.lifecycle import EmployeeLifecycle

    try:
        with get_session() as session:
            employee = find_employee(session, identity_code)
            new_code = EmployeeLifecycle(session).rename(employee, first_name, last_name)
    except AccessRuleError as e:
        fail(str(e))

    if new_code == identity_code:
        console.print(f"[green]Renamed; identity code {identity_code} unchanged[/green]")
    else:
        console.print(f"[green]Renamed; identity code {identity_code} -> {new_code}[/green]")


@employees_app.command("relocate")
def relocate_employee(
    identity_code: str = typer.Argument(..., help="Identity code"),
    department: str = typer.Option(None, "--department", "-d", help="New department"),
    location: str = typer.Option(None, "--location", "-l", help="New location")
):
    """Move an employee; stale grants are revoked and defaults reassigned."""
    from core.lifecycle import EmployeeLifecycle

    if department is None and location is None:
        fail("Give --department and/or --location")

    try:
        with get_session() as session:
            employee = find_employee(session, identity_code)
            result = EmployeeLifecycle(session).relocate(employee, department, location)
            granted = [g.profile.name for g in result.grants]
    except AccessRuleError as e:
        fail(str(e))

    console.print(f"[green]Relocated {identity_code}[/green]")
    if result.pending_review:
        console.print(f"[yellow]Pending access review: {result.reason}[/yellow]")
    elif granted:
        console.print(f"Granted profiles: {', '.join(granted)}")


@employees_app.command("check")
def check_employee(
    identity_code: str = typer.Argument(..., help="Identity code"),
    reader: str = typer.Option(None, "--reader", "-r", help="Reader to test"),
    as_of: str = typer.Option(None, "--as-of", help="Date to evaluate (YYYY-MM-DD)")
):
    """Check whether an employee's access is valid, optionally at a reader."""
    from core.rule_engine import AccessRuleEngine
    from core.store import AccessStore

    when = parse_date(as_of, "--as-of") if as_of else date.today()

    with get_session() as session:
        employee = find_employee(session, identity_code)
        engine = AccessRuleEngine(session)

        if reader is None:
            valid = engine.is_access_currently_valid(employee, when)
            style = "green" if valid else "red"
            console.print(f"[{style}]{identity_code} access valid on {when.isoformat()}: {valid}[/{style}]")
            return

        target = AccessStore(session).get_reader(reader)
        if not target:
            fail(f"Reader '{reader}' not found")

        outcome, reason = engine.can_use_reader(employee, target, when)
        if outcome.value == "GRANTED":
            header = "[bold green]ACCESS GRANTED[/bold green]"
        else:
            header = "[bold red]ACCESS DENIED[/bold red]"
        console.print(Panel(
            f"{header}\n\n"
            f"Employee: {employee.full_name} ({identity_code})\n"
            f"Reader: {reader}\n"
            f"Date: {when.isoformat()}\n\n"
            f"Reason: {reason}",
            title="Access Decision",
            box=box.DOUBLE
        ))


# ============================================================================
# Rule and Profile Commands
# ============================================================================

@rules_app.command("list")
def list_rules():
    """List default access rules by department and location."""
    from models.entities import AccessRule, Department, Location

    with get_session() as session:
        rules = session.query(AccessRule).join(
            Department, AccessRule.department_id == Department.id
        ).join(
            Location, AccessRule.location_id == Location.id
        ).order_by(Location.name, Department.name).all()

        pairings = {}
        for rule in rules:
            key = (rule.location.name, rule.department.name)
            pairings.setdefault(key, []).append(rule.profile.name)

        tree = Tree("[bold]Default Access Rules[/bold]")
        for (loc, dept), names in pairings.items():
            branch = tree.add(f"[cyan]{dept}[/cyan] @ [green]{loc}[/green]")
            for name in names:
                branch.add(name)
        console.print(tree)


@rules_app.command("add")
def add_rule(
    department: str = typer.Option(..., "--department", "-d", help="Department name"),
    location: str = typer.Option(..., "--location", "-l", help="Location name"),
    profile: str = typer.Option(..., "--profile", "-p", help="Profile name at that location")
):
    """Map a department/location pairing to an access profile."""
    from core.store import AccessStore

    try:
        with get_session() as session:
            store = AccessStore(session)
            dept = store.get_department(department)
            loc = store.get_location(location)
            if not dept:
                fail(f"Department '{department}' not found")
            if not loc:
                fail(f"Location '{location}' not found")
            prof = store.get_profile(profile, loc.id)
            if not prof:
                fail(f"Profile '{profile}' not found at {location}")

            store.add_rule(dept, loc, prof)
    except AccessRuleError as e:
        fail(str(e))

    console.print(f"[green]{department} @ {location} now receives '{profile}'[/green]")


@profiles_app.command("list")
def list_profiles():
    """List access profiles and the readers they open."""
    from models.entities import AccessProfile

    with get_session() as session:
        profiles = session.query(AccessProfile).order_by(AccessProfile.location_id, AccessProfile.name).all()

        table = Table(title="Access Profiles", box=box.ROUNDED)
        table.add_column("ID", style="cyan", justify="right")
        table.add_column("Profile", style="green")
        table.add_column("Location")
        table.add_column("Readers")

        for profile in profiles:
            table.add_row(
                str(profile.id),
                profile.name,
                profile.location.name,
                ", ".join(link.reader.name for link in profile.readers) or "-"
            )

        console.print(table)


@grants_app.command("revoke")
def revoke_grant(
    identity_code: str = typer.Argument(..., help="Identity code"),
    profile: str = typer.Option(..., "--profile", "-p", help="Profile name")
):
    """Revoke an employee's access profile."""
    from core.lifecycle import EmployeeLifecycle
    from core.store import AccessStore

    try:
        with get_session() as session:
            employee = find_employee(session, identity_code)
            prof = AccessStore(session).get_profile(profile, employee.location_id)
            if not prof:
                fail(f"Profile '{profile}' not found at {employee.location.name}")
            EmployeeLifecycle(session).revoke(employee, prof)
    except AccessRuleError as e:
        fail(str(e))

    console.print(f"[yellow]Revoked '{profile}' from {identity_code}[/yellow]")


# ============================================================================
# Swipe Audit Commands
# ============================================================================

@swipes_app.command("logs")
def view_swipes(
    limit: int = typer.Option(20, "--limit", "-n", help="Number of swipes to show"),
    employee: str = typer.Option(None, "--employee", "-e", help="Filter by identity code"),
    outcome: str = typer.Option(None, "--outcome", "-o", help="Filter by outcome (GRANTED/DENIED)")
):
    """View recent badge swipes."""
    from models.entities import SwipeOutcome
    from core.audit import SwipeAudit

    with get_session() as session:
        employee_id = find_employee(session, employee).id if employee else None

        wanted = None
        if outcome:
            try:
                wanted = SwipeOutcome(outcome.upper())
            except ValueError:
                fail(f"Unknown outcome '{outcome}', use GRANTED or DENIED")

        swipes = SwipeAudit(session).get_swipes(employee_id=employee_id, outcome=wanted, limit=limit)

        table = Table(title="Badge Swipes", box=box.ROUNDED)
        table.add_column("Time", style="dim")
        table.add_column("Code", style="cyan", no_wrap=True)
        table.add_column("Employee")
        table.add_column("Reader")
        table.add_column("Location")
        table.add_column("Outcome", no_wrap=True)

        for swipe in swipes:
            style = "green" if swipe['outcome'] == "GRANTED" else "red"
            table.add_row(
                swipe['swiped_at'].strftime("%Y-%m-%d %H:%M:%S"),
                swipe['identity_code'],
                swipe['employee_name'],
                swipe['reader'],
                swipe['location'],
                f"[{style}]{swipe['outcome']}[/{style}]"
            )

        console.print(table)


@swipes_app.command("denials")
def recent_denials(hours: int = typer.Option(24, help="Look back period in hours")):
    """Show recent denials per reader."""
    from core.audit import SwipeAudit

    with get_session() as session:
        summary = SwipeAudit(session).denial_summary(hours=hours)

    if not summary:
        console.print("[green]No denied swipes in the specified period.[/green]")
        return

    table = Table(title=f"Denied Swipes (Last {hours}h)", box=box.ROUNDED)
    table.add_column("Reader", style="cyan")
    table.add_column("Denials", justify="right", style="red")
    for reader, count in sorted(summary.items(), key=lambda item: -item[1]):
        table.add_row(reader, str(count))
    console.print(table)


# ============================================================================
# Main Entry Point
# ============================================================================

@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    database: Optional[str] = typer.Option(None, "--database", help="SQLAlchemy database URL"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Log rule engine activity")
):
    """
    Badge Access System

    Validates and generates employee identity codes and keeps badge access
    grants consistent with each employee's department and location.
    """
    configure_logging(verbose)
    if database:
        from models.database import configure_database
        configure_database(database)

    if ctx.invoked_subcommand is None:
        print_banner()
        console.print("\nUse [cyan]--help[/cyan] to see available commands.\n")
        console.print("Quick Start:")
        console.print("  1. [cyan]python main.py init[/cyan]            - Initialize database")
        console.print("  2. [cyan]python main.py demo[/cyan]            - Load demo data")
        console.print("  3. [cyan]python main.py employees list[/cyan]  - View employees")
        console.print("  4. [cyan]python main.py scenario[/cyan]        - Run walkthroughs")
        console.print()


if __name__ == "__main__":
    app()

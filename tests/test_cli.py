import pytest
from typer.testing import CliRunner

from cli.main import app


runner = CliRunner()


@pytest.fixture
def db_url(tmp_path):
    url = f"sqlite:///{tmp_path / 'badge_access.db'}"
    result = runner.invoke(app, ["--database", url, "demo"])
    assert result.exit_code == 0, result.output
    return url


def invoke(db_url, *args):
    return runner.invoke(app, ["--database", db_url, *args])


def test_demo_reports_pending_review(tmp_path):
    url = f"sqlite:///{tmp_path / 'fresh.db'}"

    result = runner.invoke(app, ["--database", url, "demo"])

    assert result.exit_code == 0, result.output
    assert "Demo data loaded" in result.output
    assert "SR100001" in result.output


def test_employees_list_shows_codes(db_url):
    result = invoke(db_url, "employees", "list")

    assert result.exit_code == 0, result.output
    assert "JS100001" in result.output
    assert "JS100002" in result.output
    assert "BS100001" in result.output


def test_hire_generates_next_code(db_url):
    result = invoke(
        db_url, "employees", "hire",
        "--first", "John", "--last", "Smith",
        "-d", "ITS", "-l", "Boston", "-e", "2030-01-31",
    )

    assert result.exit_code == 0, result.output
    assert "JS100003" in result.output
    assert "Server Room" in result.output


def test_hire_without_rule_is_pending(db_url):
    result = invoke(
        db_url, "employees", "hire",
        "--first", "Rina", "--last", "Wijaya",
        "-d", "Finance", "-l", "Jakarta", "-e", "2030-01-31",
    )

    assert result.exit_code == 0, result.output
    assert "RW100001" in result.output
    assert "Pending access review" in result.output


def test_hire_with_malformed_code_fails(db_url):
    result = invoke(
        db_url, "employees", "hire",
        "--first", "John", "--last", "Smith",
        "-d", "ITS", "-l", "Boston", "-e", "2030-01-31",
        "--code", "JSM10004",
    )

    assert result.exit_code == 1
    assert "Invalid identity_code" in result.output


def test_rename_and_check(db_url):
    renamed = invoke(db_url, "employees", "rename", "JS100001", "--first", "John", "--last", "Stevens")
    check = invoke(db_url, "employees", "check", "JS100001", "--reader", "BOS-SERVER-ROOM")

    assert renamed.exit_code == 0, renamed.output
    assert "unchanged" in renamed.output
    assert check.exit_code == 0, check.output
    assert "ACCESS GRANTED" in check.output


def test_check_unknown_employee_fails(db_url):
    result = invoke(db_url, "employees", "check", "ZZ999999")

    assert result.exit_code == 1
    assert "not found" in result.output


def test_swipe_logs(db_url):
    result = invoke(db_url, "swipes", "logs", "--outcome", "denied")

    assert result.exit_code == 0, result.output
    assert "DENIED" in result.output
    assert "GRANTED" not in result.output


def test_rules_add_existing_mapping_fails_cleanly(db_url):
    result = invoke(db_url, "rules", "add", "-d", "ITS", "-l", "Boston", "-p", "General")

    assert result.exit_code == 1
    assert "Uniqueness conflict" in result.output
    assert "Traceback" not in result.output


def test_rules_add_new_mapping(db_url):
    result = invoke(db_url, "rules", "add", "-d", "HR", "-l", "Jakarta", "-p", "General")

    assert result.exit_code == 0, result.output
    assert "now receives" in result.output


def test_database_option_rebinds_live_engine(tmp_path):
    import models
    from models import database

    url = f"sqlite:///{tmp_path / 'rebound.db'}"
    result = runner.invoke(app, ["--database", url, "init"])

    assert result.exit_code == 0, result.output
    assert str(database.engine.url) == url
    assert not hasattr(models, "engine")

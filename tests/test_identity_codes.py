import re

import pytest

from models.entities import Employee
from core.errors import CodeCollisionError, InvalidFormatError, UniquenessConflictError
from core.lifecycle import EmployeeLifecycle
from core.rule_engine import AccessRuleEngine, code_prefix


CODE_RE = re.compile(r"^[A-Z]{2}[0-9]{6}$")


def _employee(org, first, last, expires, code=None):
    return Employee(
        first_name=first,
        last_name=last,
        department_id=org["departments"]["ITS"].id,
        location_id=org["locations"]["Boston"].id,
        contract_expires=expires,
        identity_code=code,
    )


def test_first_john_smith_gets_js100001(rule_engine, org, next_year):
    employee = _employee(org, "John", "Smith", next_year)

    assert rule_engine.validate_or_generate_identity_code(employee) == "JS100001"


def test_second_john_smith_gets_js100002(lifecycle, next_year):
    first = lifecycle.hire("John", "Smith", "ITS", "Boston", next_year)
    second = lifecycle.hire("John", "Smith", "ITS", "Boston", next_year)

    assert first.employee.identity_code == "JS100001"
    assert second.employee.identity_code == "JS100002"


def test_generation_does_not_write(rule_engine, session, org, next_year):
    employee = _employee(org, "John", "Smith", next_year)

    rule_engine.validate_or_generate_identity_code(employee)
    rule_engine.validate_or_generate_identity_code(employee)

    assert session.query(Employee).count() == 0


def test_generated_codes_are_unique_per_prefix(lifecycle, next_year):
    names = [
        ("John", "Smith"), ("Jane", "Sato"), ("Ann", "Lee"),
        ("Jim", "Stone"), ("Abe", "Lincoln"), ("Zoe", "Quinn"),
    ]
    codes = [
        lifecycle.hire(first, last, "ITS", "Boston", next_year).employee.identity_code
        for first, last in names
    ]

    assert all(CODE_RE.match(code) for code in codes)
    assert len(set(codes)) == len(codes)
    assert [c for c in codes if c.startswith("JS")] == ["JS100001", "JS100002", "JS100003"]
    assert [c for c in codes if c.startswith("AL")] == ["AL100001", "AL100002"]
    assert "ZQ100001" in codes


@pytest.mark.parametrize("bad_code", ["J1100004", "js100004", "JSM10004", "JS10004", "JS1000045"])
def test_malformed_code_is_rejected(rule_engine, org, next_year, bad_code):
    employee = _employee(org, "John", "Smith", next_year, code=bad_code)

    with pytest.raises(InvalidFormatError) as exc_info:
        rule_engine.validate_or_generate_identity_code(employee)

    assert exc_info.value.field == "identity_code"
    assert exc_info.value.value == bad_code


def test_code_with_other_initials_is_rejected(rule_engine, org, next_year):
    employee = _employee(org, "John", "Smith", next_year, code="AB123456")

    with pytest.raises(InvalidFormatError, match="initials must be 'JS'"):
        rule_engine.validate_or_generate_identity_code(employee)


def test_valid_supplied_code_is_kept(rule_engine, org, next_year):
    employee = _employee(org, "John", "Smith", next_year, code="JS000042")

    assert rule_engine.validate_or_generate_identity_code(employee) == "JS000042"


def test_supplied_code_held_by_someone_else_conflicts(lifecycle, rule_engine, org, next_year):
    lifecycle.hire("John", "Smith", "ITS", "Boston", next_year)
    employee = _employee(org, "Jane", "Sato", next_year, code="JS100001")

    with pytest.raises(UniquenessConflictError):
        rule_engine.validate_or_generate_identity_code(employee)


def test_generation_continues_after_supplied_code(lifecycle, next_year):
    lifecycle.hire("John", "Smith", "ITS", "Boston", next_year, identity_code="JS100500")

    result = lifecycle.hire("Jane", "Sato", "ITS", "Boston", next_year)

    assert result.employee.identity_code == "JS100501"


def test_generation_falls_back_to_gaps(lifecycle, next_year):
    lifecycle.hire("John", "Smith", "ITS", "Boston", next_year, identity_code="JS999999")

    result = lifecycle.hire("Jane", "Sato", "ITS", "Boston", next_year)

    assert result.employee.identity_code == "JS100001"


def test_exhausted_prefix_raises_code_collision(session, lifecycle, org, next_year):
    lifecycle.hire("John", "Smith", "ITS", "Boston", next_year, identity_code="JS999998")
    lifecycle.hire("Jane", "Sato", "ITS", "Boston", next_year, identity_code="JS999999")
    engine = AccessRuleEngine(session, sequence_start=999998)

    with pytest.raises(CodeCollisionError) as exc_info:
        engine.validate_or_generate_identity_code(_employee(org, "Jim", "Stone", next_year))

    assert exc_info.value.prefix == "JS"


@pytest.mark.parametrize("first,last,field", [
    ("123", "Smith", "first_name"),
    ("John", "", "last_name"),
    ("  ", "Smith", "first_name"),
])
def test_name_without_initial_is_rejected(first, last, field):
    with pytest.raises(InvalidFormatError) as exc_info:
        code_prefix(first, last)

    assert exc_info.value.field == field


def test_initials_fold_accents_and_case():
    assert code_prefix("émile", "Zola") == "EZ"
    assert code_prefix("Ñuño", "Álvarez") == "NA"


# ----------------------------------------------------------------------
# Name changes
# ----------------------------------------------------------------------

def test_rename_with_same_initials_keeps_code(lifecycle, rule_engine, next_year):
    employee = lifecycle.hire("John", "Smith", "ITS", "Boston", next_year).employee
    employee.last_name = "Stevens"

    assert rule_engine.regenerate_on_name_change(employee, "JS100001") == "JS100001"


def test_rename_with_new_initials_keeps_suffix(lifecycle, rule_engine, next_year):
    employee = lifecycle.hire("John", "Smith", "ITS", "Boston", next_year).employee
    employee.first_name = "Mary"

    assert rule_engine.regenerate_on_name_change(employee, "JS100001") == "MS100001"


def test_rename_reallocates_when_suffix_taken(lifecycle, rule_engine, next_year):
    lifecycle.hire("Mary", "Smith", "ITS", "Boston", next_year)
    employee = lifecycle.hire("John", "Smith", "ITS", "Boston", next_year).employee
    assert employee.identity_code == "JS100001"
    employee.first_name = "Mary"

    assert rule_engine.regenerate_on_name_change(employee, "JS100001") == "MS100002"


def test_rename_into_exhausted_prefix_raises(session, lifecycle, next_year):
    lifecycle.hire("Mary", "Smith", "ITS", "Boston", next_year, identity_code="MS999999")
    employee = lifecycle.hire("John", "Smith", "ITS", "Boston", next_year, identity_code="JS999999").employee
    employee.first_name = "Mary"
    engine = AccessRuleEngine(session, sequence_start=999999)

    with pytest.raises(CodeCollisionError):
        engine.regenerate_on_name_change(employee, "JS999999")


def test_lifecycle_rename_persists_new_code(lifecycle, session, next_year):
    employee = lifecycle.hire("John", "Smith", "ITS", "Boston", next_year).employee

    new_code = lifecycle.rename(employee, "Mary", "Smith")

    assert new_code == "MS100001"
    stored = lifecycle.store.get_employee_by_code("MS100001")
    assert stored is employee
    assert (stored.code_prefix, stored.code_sequence) == ("MS", 100001)
    assert lifecycle.store.get_employee_by_code("JS100001") is None


def test_lifecycle_rename_john_smith_to_john_stevens(lifecycle, next_year):
    employee = lifecycle.hire("John", "Smith", "ITS", "Boston", next_year).employee

    assert lifecycle.rename(employee, "John", "Stevens") == "JS100001"
    assert employee.last_name == "Stevens"
    assert employee.identity_code == "JS100001"


class TakenCodeEngine(AccessRuleEngine):
    """Regenerates to a code another employee already holds."""

    def regenerate_on_name_change(self, employee, old_code):
        return "MS100001"


def test_rename_conflict_restores_name_and_code(session, org, next_year):
    lifecycle = EmployeeLifecycle(session, engine=TakenCodeEngine(session))
    lifecycle.hire("Mary", "Smith", "ITS", "Boston", next_year)
    employee = lifecycle.hire("John", "Smith", "ITS", "Boston", next_year).employee

    with pytest.raises(UniquenessConflictError):
        lifecycle.rename(employee, "Mary", "Stone")

    session.expire(employee)
    assert (employee.first_name, employee.last_name) == ("John", "Smith")
    assert employee.identity_code == "JS100001"
    assert code_prefix(employee.first_name, employee.last_name) == employee.code_prefix


def test_rename_into_exhausted_prefix_restores_name(session, org, next_year):
    lifecycle = EmployeeLifecycle(session, engine=AccessRuleEngine(session, sequence_start=999999))
    lifecycle.hire("Mary", "Smith", "ITS", "Boston", next_year, identity_code="MS999999")
    employee = lifecycle.hire("John", "Smith", "ITS", "Boston", next_year, identity_code="JS999999").employee

    with pytest.raises(CodeCollisionError):
        lifecycle.rename(employee, "Mary", "Smith")

    session.expire(employee)
    assert employee.first_name == "John"
    assert employee.identity_code == "JS999999"


def test_rename_to_unusable_name_restores_name(lifecycle, session, next_year):
    employee = lifecycle.hire("John", "Smith", "ITS", "Boston", next_year).employee

    with pytest.raises(InvalidFormatError):
        lifecycle.rename(employee, "1ohn", "Smith")

    session.expire(employee)
    assert employee.first_name == "John"
    assert employee.identity_code == "JS100001"

from datetime import date

import pytest

from aircontrol.schemas import ContractStatus, EquipmentCreate, PeriodStatus, ServiceReportCreate
from aircontrol.services import period_operations as ops
from aircontrol.services.errors import NotFoundError, ValidationError

from conftest import TODAY, make_contract, make_equipment, make_period


@pytest.fixture
def contract():
    return make_contract(
        periods=[
            make_period(period_id="p1", start=date(2025, 4, 1), end=date(2025, 4, 3), engineers=["e1"]),
            make_period(period_id="p2", name="ТО 2", start=date(2025, 7, 1), end=date(2025, 7, 3), equipment=["q1"]),
        ],
        equipment=[make_equipment(equipment_id="q1"), make_equipment(name="ДБЖ", model="APC", equipment_id="q2")],
    )


# ============================================================================
# Finalize / unfinalize
# ============================================================================

def test_finalize_requires_an_engineer(contract):
    with pytest.raises(ValidationError):
        ops.finalize_period(contract, "p1", date(2025, 4, 2), date(2025, 4, 2), [], TODAY)

    period = contract.find_period("p1")
    assert period.status == PeriodStatus.SCHEDULED
    assert period.start_date == date(2025, 4, 1)


def test_finalize_records_actual_work(contract):
    updated = ops.finalize_period(contract, "p1", date(2025, 4, 2), date(2025, 4, 4), ["e2", "e2", "e3"], TODAY)
    period = updated.find_period("p1")
    assert period.status == PeriodStatus.DONE
    assert (period.start_date, period.end_date) == (date(2025, 4, 2), date(2025, 4, 4))
    assert period.assigned_engineer_ids == ["e2", "e3"]
    assert updated.status == ContractStatus.SCHEDULED
    # input untouched
    assert contract.find_period("p1").status == PeriodStatus.SCHEDULED


def test_finalizing_last_scheduled_period_marks_contract_done(contract):
    updated = ops.finalize_period(contract, "p1", date(2025, 4, 2), date(2025, 4, 2), ["e1"], TODAY)
    updated = ops.finalize_period(updated, "p2", date(2025, 7, 2), date(2025, 7, 2), ["e1"], TODAY)
    assert updated.status == ContractStatus.DONE

    reopened = ops.unfinalize_period(updated, "p2", TODAY)
    assert reopened.find_period("p2").status == PeriodStatus.SCHEDULED
    assert reopened.status == ContractStatus.SCHEDULED


def test_finalize_rejects_reversed_dates(contract):
    with pytest.raises(ValidationError):
        ops.finalize_period(contract, "p1", date(2025, 4, 5), date(2025, 4, 2), ["e1"], TODAY)


def test_finalize_unknown_period(contract):
    with pytest.raises(NotFoundError):
        ops.finalize_period(contract, "nope", date(2025, 4, 2), date(2025, 4, 2), ["e1"], TODAY)


# ============================================================================
# Add / remove periods
# ============================================================================

def test_cannot_remove_only_period():
    contract = make_contract(periods=[make_period(period_id="only")])
    with pytest.raises(ValidationError):
        ops.remove_period(contract, "only", TODAY)
    assert len(contract.maintenance_periods) == 1


def test_remove_period(contract):
    updated = ops.remove_period(contract, "p1", TODAY)
    assert [p.id for p in updated.maintenance_periods] == ["p2"]


def test_add_period_names_by_position(contract):
    updated = ops.add_period(contract, TODAY)
    added = updated.maintenance_periods[-1]
    assert added.name == "ТО 3"
    assert added.status == PeriodStatus.SCHEDULED
    assert added.start_date is None
    assert len(contract.maintenance_periods) == 2


# ============================================================================
# Dates and toggles
# ============================================================================

def test_edit_dates_rejects_start_after_end(contract):
    with pytest.raises(ValidationError):
        ops.edit_dates(contract, "p1", date(2025, 4, 10), date(2025, 4, 5), TODAY)
    assert contract.find_period("p1").start_date == date(2025, 4, 1)


def test_edit_dates_requires_both(contract):
    with pytest.raises(ValidationError):
        ops.edit_dates(contract, "p1", date(2025, 4, 10), None, TODAY)


def test_edit_dates_can_converge_to_final_works(contract):
    updated = ops.edit_dates(contract, "p2", date(2025, 4, 1), date(2025, 4, 2), TODAY)
    assert updated.find_period("p2").start_date == date(2025, 4, 1)
    assert updated.status == ContractStatus.SCHEDULED


def test_toggle_engineer(contract):
    added = ops.toggle_engineer(contract, "p1", "e2", ["e1", "e2"], TODAY)
    assert added.find_period("p1").assigned_engineer_ids == ["e1", "e2"]

    removed = ops.toggle_engineer(added, "p1", "e1", ["e1", "e2"], TODAY)
    assert removed.find_period("p1").assigned_engineer_ids == ["e2"]


def test_toggle_unknown_engineer(contract):
    with pytest.raises(ValidationError):
        ops.toggle_engineer(contract, "p1", "ghost", ["e1"], TODAY)


def test_unassign_engineer(contract):
    updated = ops.unassign_engineer(contract, "e1", TODAY)
    assert updated.find_period("p1").assigned_engineer_ids == []
    assert contract.find_period("p1").assigned_engineer_ids == ["e1"]

    finished = ops.finalize_period(contract, "p1", date(2025, 4, 2), date(2025, 4, 2), ["e1"], TODAY)
    with pytest.raises(ValidationError):
        ops.unassign_engineer(finished, "e1", TODAY)


def test_toggle_equipment(contract):
    updated = ops.toggle_equipment(contract, "p1", "q2", TODAY)
    assert updated.find_period("p1").equipment_ids == ["q2"]

    updated = ops.toggle_equipment(updated, "p2", "q1", TODAY)
    assert updated.find_period("p2").equipment_ids == []

    with pytest.raises(NotFoundError):
        ops.toggle_equipment(contract, "p1", "missing", TODAY)


# ============================================================================
# Archive guard
# ============================================================================

def test_archive_guard():
    active = make_contract(end=date(2025, 3, 2), status=ContractStatus.SCHEDULED)
    with pytest.raises(ValidationError):
        ops.archive_contract(active, TODAY)
    assert active.archived is False

    finished = make_contract(end=date(2025, 3, 2), status=ContractStatus.DONE)
    assert ops.archive_contract(finished, TODAY).archived is True


def test_archive_expired_contract():
    expired = make_contract(end=date(2025, 2, 28), status=ContractStatus.PROLONGATION)
    archived = ops.archive_contract(expired, TODAY)
    assert archived.archived is True
    assert ops.restore_contract(archived, TODAY).archived is False


def test_archive_on_end_date():
    ending = make_contract(end=TODAY, status=ContractStatus.SCHEDULED)
    assert ops.archive_contract(ending, TODAY).archived is True


# ============================================================================
# Equipment and reports
# ============================================================================

def test_add_and_remove_equipment(contract):
    updated = ops.add_equipment(contract, EquipmentCreate(name="ДГУ", model="Genmac"), TODAY)
    assert updated.equipment[-1].name == "ДГУ"

    updated = ops.remove_equipment(updated, "q1", TODAY)
    assert updated.find_equipment("q1") is None
    assert updated.find_period("p2").equipment_ids == []


def test_reports_require_known_engineer(contract):
    report = ServiceReportCreate(report_date="05.04.2025", engineer_id="ghost", work_description="Чистка")
    with pytest.raises(ValidationError):
        ops.add_report(contract, "q1", report, ["e1"], TODAY)


def test_add_and_update_report(contract):
    report = ServiceReportCreate(
        report_date="2025-04-05",
        engineer_id="e1",
        work_description="Чистка фільтрів",
        parts_used=[{"name": "Фільтр", "quantity": 2}],
    )
    updated = ops.add_report(contract, "q1", report, ["e1"], TODAY)
    saved = updated.find_equipment("q1").reports[0]
    assert saved.report_date == date(2025, 4, 5)
    assert saved.parts_used[0].quantity == 2

    changed = ServiceReportCreate(report_date="2025-04-06", engineer_id="e1", work_description="Заправка")
    updated = ops.update_report(updated, "q1", saved.id, changed, ["e1"], TODAY)
    reports = updated.find_equipment("q1").reports
    assert len(reports) == 1
    assert reports[0].id == saved.id
    assert reports[0].work_description == "Заправка"

    with pytest.raises(NotFoundError):
        ops.update_report(updated, "q1", "missing", changed, ["e1"], TODAY)

from datetime import date

from aircontrol.schemas import ContractStatus, DisplayStatus, PeriodStatus
from aircontrol.services.status_engine import (
    contract_view, derive_contract_status, derive_display_status, needs_prolongation, recompute_status,
)

from conftest import TODAY, make_contract, make_period


def test_same_inputs_give_same_status():
    periods = [
        make_period(start=date(2025, 4, 1), end=date(2025, 4, 5)),
        make_period(name="ТО 2", start=date(2025, 7, 1), end=date(2025, 7, 5)),
    ]
    first = derive_display_status(date(2025, 12, 31), periods, TODAY)
    second = derive_display_status(date(2025, 12, 31), list(periods), TODAY)
    assert first == second == DisplayStatus.SCHEDULED


def test_prolongation_wins_over_period_states():
    done = [make_period(start=date(2025, 1, 1), end=date(2025, 1, 2), status=PeriodStatus.DONE)]
    scheduled = [
        make_period(start=date(2025, 4, 1), end=date(2025, 4, 2)),
        make_period(name="ТО 2", start=date(2025, 5, 1), end=date(2025, 5, 2)),
    ]
    for periods in (done, scheduled):
        # ended in the past
        assert derive_display_status(date(2025, 2, 1), periods, TODAY) == DisplayStatus.PROLONGATION
        # ends later this month
        assert derive_display_status(date(2025, 3, 31), periods, TODAY) == DisplayStatus.PROLONGATION
        assert derive_contract_status(date(2025, 3, 31), periods, TODAY) == ContractStatus.PROLONGATION


def test_single_remaining_day_is_final_works():
    periods = [
        make_period(start=date(2025, 3, 10), end=date(2025, 3, 11)),
        make_period(name="ТО 2", start=date(2025, 3, 10), end=date(2025, 3, 12)),
    ]
    assert derive_display_status(date(2025, 12, 31), periods, TODAY) == DisplayStatus.FINAL_WORKS

    periods[1] = make_period(name="ТО 2", start=date(2025, 3, 15), end=date(2025, 3, 16))
    assert derive_display_status(date(2025, 12, 31), periods, TODAY) == DisplayStatus.SCHEDULED


def test_all_done_collapses_to_final_works():
    periods = [
        make_period(start=date(2025, 1, 10), end=date(2025, 1, 11), status=PeriodStatus.DONE),
        make_period(name="ТО 2", start=date(2025, 2, 10), end=date(2025, 2, 11), status=PeriodStatus.DONE),
    ]
    assert derive_display_status(date(2025, 12, 31), periods, TODAY) == DisplayStatus.FINAL_WORKS
    assert derive_contract_status(date(2025, 12, 31), periods, TODAY) == ContractStatus.DONE


def test_scheduled_periods_without_dates_do_not_count_as_a_day():
    periods = [make_period(), make_period(name="ТО 2")]
    assert derive_display_status(date(2025, 12, 31), periods, TODAY) == DisplayStatus.SCHEDULED


def test_no_end_date_never_needs_prolongation():
    assert not needs_prolongation(None, TODAY)
    assert needs_prolongation(date(2025, 3, 1), TODAY)
    assert not needs_prolongation(date(2025, 4, 1), TODAY)


def test_recompute_status_returns_a_copy():
    contract = make_contract(periods=[make_period(status=PeriodStatus.DONE)])
    updated = recompute_status(contract, TODAY)
    assert updated.status == ContractStatus.DONE
    assert contract.status == ContractStatus.SCHEDULED


def test_contract_view_counts_periods():
    contract = make_contract(periods=[
        make_period(status=PeriodStatus.DONE),
        make_period(name="ТО 2", start=date(2025, 5, 1), end=date(2025, 5, 3)),
    ])
    view = contract_view(contract, TODAY)
    assert view.completed_periods == 1
    assert view.total_periods == 2
    assert view.display_status == DisplayStatus.FINAL_WORKS

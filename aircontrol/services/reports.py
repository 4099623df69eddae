"""
Summary statistics for the reports screen.

Only non-archived contracts are counted. "Attention needed" uses the
same display-status derivation as the contract list, so the numbers on
the reports screen always match the badges on the cards.
"""
from collections import Counter
from datetime import date
from typing import Dict, Iterable, List

from aircontrol.schemas import ContractStatus, DisplayStatus, PeriodStatus, ServiceContract
from aircontrol.services.status_engine import derive_display_status

STATUS_ORDER = [ContractStatus.SCHEDULED, ContractStatus.DONE, ContractStatus.PROLONGATION]


def engineer_workload(contracts: List[ServiceContract], engineers: Dict[str, str]) -> List[dict]:
    """
    Plan counts every period an engineer is assigned to, fact only the
    completed ones. Busiest engineers first, then by name.
    """
    workload = {eid: {"id": eid, "name": name, "plan": 0, "fact": 0} for eid, name in engineers.items()}
    for contract in contracts:
        for period in contract.maintenance_periods:
            for engineer_id in period.assigned_engineer_ids:
                entry = workload.get(engineer_id)
                if entry is None:
                    continue
                entry["plan"] += 1
                if period.status == PeriodStatus.DONE:
                    entry["fact"] += 1

    return sorted(workload.values(), key=lambda e: (-(e["plan"] + e["fact"]), e["name"]))


def summary(contracts: Iterable[ServiceContract], engineers: Dict[str, str], today: date) -> dict:
    active = [c for c in contracts if not c.archived]
    total = len(active)

    display = Counter(
        derive_display_status(c.contract_end_date, c.maintenance_periods, today) for c in active
    )
    prolongation_count = display[DisplayStatus.PROLONGATION]
    final_works_count = display[DisplayStatus.FINAL_WORKS]

    by_status = Counter(c.status for c in active)
    contracts_by_status = [
        {
            "status": status.value,
            "count": by_status[status],
            "percentage": round(by_status[status] / total * 100, 1) if total else 0.0,
        }
        for status in STATUS_ORDER
        if by_status[status]
    ]

    periods = [p for c in active for p in c.maintenance_periods]
    by_month = Counter(p.start_date.strftime("%Y-%m") for p in periods if p.start_date)
    subdivisions = Counter(p.subdivision.value for p in periods)

    return {
        "total_contracts": total,
        "attention_needed_total": prolongation_count + final_works_count,
        "prolongation_count": prolongation_count,
        "final_works_count": final_works_count,
        "contracts_by_status": contracts_by_status,
        "periods_by_month": [{"month": m, "count": by_month[m]} for m in sorted(by_month)],
        "subdivision_usage": [{"subdivision": s, "count": n} for s, n in subdivisions.items()],
        "engineer_workload": engineer_workload(active, engineers),
    }

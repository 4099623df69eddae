"""
Rescheduling assistant.

Builds the context package for the suggestion oracle (the period to move,
every other scheduled period, or a month worth of periods for the batch
planner), sends one prompt, and validates what comes back. The oracle is
instructed to stay inside each period's window, to spread work across
the month and to keep at most two visits per day, but none of that is
trusted: every date is parsed and range-checked here, and anything that
fails is reported under "rejected" instead of being dropped silently.

Suggestions are advisory. Nothing is written to the contracts.
"""
from collections import defaultdict
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Set, Tuple
import json
import logging
import re

from aircontrol.schemas import (
    MaintenancePeriod, MonthPlanResponse, PeriodProjection, PeriodStatus, PlannedPeriod,
    RejectedSuggestion, RescheduleResponse, RescheduleSuggestion, ServiceContract,
    SuggestionConflicts,
)
from aircontrol.services.errors import NotFoundError, OracleError, ValidationError
from aircontrol.services.suggestion_oracle import SuggestionOracle
from aircontrol.utils.dates import format_dotted, month_bounds, to_date

logger = logging.getLogger(__name__)

MAX_PERIODS_PER_DAY = 2
MAX_DATES_PER_PERIOD = 2

SINGLE_PROMPT = """
You are an assistant that plans preventive maintenance visits for climate, UPS and generator equipment.

The maintenance period that needs a new start date:
{period}

Other maintenance periods that are already scheduled:
{others}

Suggest up to three alternative start dates for the period.
Rules:
- If the period has both startDate and endDate, every date must fall inside that window.
- Avoid days where the same engineers (assignedEngineerIds) already have work.
- Avoid days that already have {max_per_day} or more visits.

Return only JSON in this format:
{{"suggestions": [{{"newDate": "YYYY-MM-DD", "reason": "short explanation", "originalPeriodId": "{period_id}"}}]}}
"""

BATCH_PROMPT = """
You are an assistant that plans preventive maintenance visits for climate, UPS and generator equipment.

Month to plan: {month_ref} ({month_start} - {month_end}).

Maintenance periods to place:
{periods}

Rules:
1. Spread all periods evenly across the month.
2. For every period suggest 1 or 2 concrete dates in DD.MM.YYYY format inside the period's own [startDate, endDate] window.
3. Keep at most {max_per_day} periods on the same day.
4. If a period has only one possible date, use it.

Return only a JSON array in this format:
[{{"id": "<period id>", "name": "<period name>", "suggestedDates": ["DD.MM.YYYY"], "reason": "short explanation"}}]
"""


# ============================================================================
# Context package
# ============================================================================

def equipment_details(contract: ServiceContract, period: MaintenancePeriod) -> str:
    covered = [e for e in contract.equipment if e.id in period.equipment_ids]
    return ", ".join(f"{e.name} {e.model}".strip() for e in covered)


def project_period(contract: ServiceContract, period: MaintenancePeriod) -> PeriodProjection:
    return PeriodProjection(
        id=period.id,
        name=period.name,
        start_date=period.start_date,
        end_date=period.end_date,
        subdivision=period.subdivision.value,
        assigned_engineer_ids=list(period.assigned_engineer_ids),
        equipment_details=equipment_details(contract, period),
        status=period.status.value,
        contract_id=contract.id,
        contract_name=contract.object_name or contract.contract_number,
        address=contract.address,
    )


def scheduled_projections(contracts: Iterable[ServiceContract]) -> List[PeriodProjection]:
    return [
        project_period(contract, period)
        for contract in contracts
        if not contract.archived
        for period in contract.maintenance_periods
        if period.status == PeriodStatus.SCHEDULED
    ]


def build_single_request(
    contract: ServiceContract,
    period_id: str,
    contracts: Iterable[ServiceContract],
) -> Dict[str, Any]:
    period = contract.find_period(period_id)
    if period is None:
        raise NotFoundError(f"Maintenance period {period_id} not found")
    if period.status != PeriodStatus.SCHEDULED:
        raise ValidationError(f"'{period.name}' is already completed")

    others = [p for p in scheduled_projections(contracts) if p.id != period_id]
    return {
        "periodToReschedule": project_period(contract, period),
        "otherScheduledPeriods": others,
    }


def window_overlaps(projection: PeriodProjection, start: date, end: date) -> bool:
    first = projection.start_date or projection.end_date
    last = projection.end_date or projection.start_date
    if first is None:
        return False
    return first <= end and last >= start


def build_batch_request(
    contracts: Iterable[ServiceContract],
    month_ref: Optional[str],
    today: date,
    contract_ids: Optional[Iterable[str]] = None,
) -> Dict[str, Any]:
    month_start, month_end = month_bounds(month_ref, today)
    selected = set(contract_ids) if contract_ids else None

    periods = [
        p for p in scheduled_projections(contracts)
        if (selected is None or p.contract_id in selected) and window_overlaps(p, month_start, month_end)
    ]
    return {
        "periods": periods,
        "monthRef": month_start.strftime("%Y-%m"),
        "monthStart": month_start,
        "monthEnd": month_end,
    }


def dump_projections(projections) -> str:
    if isinstance(projections, PeriodProjection):
        return json.dumps(projections.model_dump(mode="json", by_alias=True), ensure_ascii=False, indent=2)
    return json.dumps(
        [p.model_dump(mode="json", by_alias=True) for p in projections],
        ensure_ascii=False,
        indent=2,
    )


# ============================================================================
# Output validation
# ============================================================================

def extract_json(text: str) -> Any:
    """Parse model output that may be wrapped in code fences or prose"""
    if not text or not text.strip():
        raise OracleError("AI assistant returned an empty response")

    cleaned = re.sub(r"^```(?:json)?\s*|\s*```$", "", text.strip())
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError:
        pass

    starts = [i for i in (cleaned.find("["), cleaned.find("{")) if i != -1]
    if starts:
        start = min(starts)
        end = max(cleaned.rfind("]"), cleaned.rfind("}"))
        if end > start:
            try:
                return json.loads(cleaned[start:end + 1])
            except json.JSONDecodeError:
                pass

    logger.error(f"Could not parse AI response as JSON: {text[:200]!r}")
    raise OracleError("AI assistant returned a response that could not be parsed")


def parse_suggested_date(value: Any) -> Optional[date]:
    if not isinstance(value, str):
        return None
    try:
        return to_date(value)
    except ValidationError:
        return None


def outside_window(day: date, start: Optional[date], end: Optional[date]) -> bool:
    if start is None or end is None:
        return False
    return day < start or day > end


class ConflictIndex:
    """Which periods sit on which day, and with whom"""

    def __init__(self):
        self._by_day: Dict[date, List[Tuple[str, Set[str]]]] = defaultdict(list)

    def add(self, period_id: str, day: Optional[date], engineer_ids: Iterable[str]):
        if day is not None:
            self._by_day[day].append((period_id, set(engineer_ids)))

    def conflicts_for(self, period_id: str, day: date, engineer_ids: Iterable[str]) -> SuggestionConflicts:
        engineers = set(engineer_ids)
        others = [(pid, eng) for pid, eng in self._by_day.get(day, []) if pid != period_id]
        shared = [pid for pid, eng in others if engineers & eng]
        on_day = len(others) + 1
        return SuggestionConflicts(
            shared_engineer_period_ids=shared,
            periods_on_day=on_day,
            overloaded_day=on_day > MAX_PERIODS_PER_DAY,
        )


class RescheduleAdapter:
    """Ask the oracle for dates and keep only what passes validation"""

    def __init__(self, oracle: SuggestionOracle):
        self.oracle = oracle

    async def suggest_for_period(
        self,
        contract: ServiceContract,
        period_id: str,
        contracts: List[ServiceContract],
    ) -> RescheduleResponse:
        request = build_single_request(contract, period_id, contracts)
        target: PeriodProjection = request["periodToReschedule"]
        others: List[PeriodProjection] = request["otherScheduledPeriods"]

        prompt = SINGLE_PROMPT.format(
            period=dump_projections(target),
            others=dump_projections(others),
            max_per_day=MAX_PERIODS_PER_DAY,
            period_id=target.id,
        )
        raw = await self.oracle.complete(prompt)
        payload = extract_json(raw)

        items = payload.get("suggestions") if isinstance(payload, dict) else payload
        if not isinstance(items, list):
            raise OracleError("AI assistant response has no suggestions list")

        index = ConflictIndex()
        for other in others:
            index.add(other.id, other.start_date, other.assigned_engineer_ids)

        suggestions: List[RescheduleSuggestion] = []
        rejected: List[RejectedSuggestion] = []
        for item in items:
            if not isinstance(item, dict):
                rejected.append(RejectedSuggestion(value=item, reason="Suggestion is not an object"))
                continue

            original_id = item.get("originalPeriodId") or target.id
            if original_id != target.id:
                rejected.append(RejectedSuggestion(
                    original_period_id=str(original_id), value=item, reason="Unknown period id",
                ))
                continue

            new_date = parse_suggested_date(item.get("newDate"))
            if new_date is None:
                rejected.append(RejectedSuggestion(
                    original_period_id=target.id, value=item.get("newDate"), reason="Unparseable date",
                ))
                continue
            if outside_window(new_date, target.start_date, target.end_date):
                rejected.append(RejectedSuggestion(
                    original_period_id=target.id, value=item.get("newDate"),
                    reason="Date is outside the period window",
                ))
                continue

            suggestions.append(RescheduleSuggestion(
                new_date=new_date,
                reason=str(item.get("reason") or ""),
                original_period_id=target.id,
                conflicts=index.conflicts_for(target.id, new_date, target.assigned_engineer_ids),
            ))

        if rejected:
            logger.warning(f"Rejected {len(rejected)} AI suggestion(s) for period {target.id}")
        logger.info(f"AI suggested {len(suggestions)} date(s) for period {target.id}")
        return RescheduleResponse(suggestions=suggestions, rejected=rejected)

    async def plan_month(
        self,
        contracts: List[ServiceContract],
        month_ref: Optional[str],
        today: date,
        contract_ids: Optional[List[str]] = None,
    ) -> MonthPlanResponse:
        request = build_batch_request(contracts, month_ref, today, contract_ids)
        periods: List[PeriodProjection] = request["periods"]
        month_ref = request["monthRef"]

        if not periods:
            raise ValidationError(f"No scheduled maintenance periods in {month_ref}")

        prompt = BATCH_PROMPT.format(
            month_ref=month_ref,
            month_start=format_dotted(request["monthStart"]),
            month_end=format_dotted(request["monthEnd"]),
            periods=dump_projections(periods),
            max_per_day=MAX_PERIODS_PER_DAY,
        )
        raw = await self.oracle.complete(prompt)
        payload = extract_json(raw)

        if isinstance(payload, dict):
            payload = payload.get("data") or payload.get("periods") or payload.get("suggestions")
        if not isinstance(payload, list):
            raise OracleError("AI assistant response is not a list of periods")

        by_id = {p.id: p for p in periods}
        planned: List[PlannedPeriod] = []
        accepted_days: List[Tuple[PeriodProjection, List[date]]] = []
        rejected: List[RejectedSuggestion] = []

        for item in payload:
            if not isinstance(item, dict):
                rejected.append(RejectedSuggestion(value=item, reason="Suggestion is not an object"))
                continue

            period = by_id.get(str(item.get("id")))
            if period is None:
                rejected.append(RejectedSuggestion(
                    original_period_id=str(item.get("id")), value=item, reason="Unknown period id",
                ))
                continue

            raw_dates = item.get("suggestedDates")
            if isinstance(raw_dates, str):
                raw_dates = [raw_dates]
            if not isinstance(raw_dates, list):
                raw_dates = []

            days: List[date] = []
            for value in raw_dates:
                day = parse_suggested_date(value)
                if day is None:
                    reason = "Unparseable date"
                elif outside_window(day, period.start_date, period.end_date):
                    reason = "Date is outside the period window"
                elif len(days) >= MAX_DATES_PER_PERIOD:
                    reason = "More than two dates suggested"
                else:
                    if day not in days:
                        days.append(day)
                    continue
                rejected.append(RejectedSuggestion(original_period_id=period.id, value=value, reason=reason))

            if not days:
                rejected.append(RejectedSuggestion(
                    original_period_id=period.id, value=item, reason="No usable date for period",
                ))
                continue

            accepted_days.append((period, days))

        # Load is measured on the first suggested day of every accepted period
        # plus scheduled periods outside this batch
        index = ConflictIndex()
        for other in scheduled_projections(contracts):
            if other.id not in by_id:
                index.add(other.id, other.start_date, other.assigned_engineer_ids)
        for period, days in accepted_days:
            index.add(period.id, days[0], period.assigned_engineer_ids)

        reasons = {str(item.get("id")): item.get("reason") for item in payload if isinstance(item, dict)}
        for period, days in accepted_days:
            planned.append(PlannedPeriod(
                id=period.id,
                name=period.name,
                suggested_dates=[format_dotted(d) for d in days],
                reason=str(reasons.get(period.id) or ""),
                conflicts=index.conflicts_for(period.id, days[0], period.assigned_engineer_ids),
            ))

        if rejected:
            logger.warning(f"Rejected {len(rejected)} AI plan entries for {month_ref}")
        logger.info(f"AI planned {len(planned)} of {len(periods)} period(s) for {month_ref}")
        return MonthPlanResponse(ok=True, month_ref=month_ref, data=planned, rejected=rejected, raw=raw)

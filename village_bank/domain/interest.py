"""Interest engine - simple per-period interest with grace and overdue blocks"""

import logging
import math
from datetime import datetime, timedelta
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, Optional, Union

from village_bank.config import settings
from village_bank.domain.exceptions import ValidationError
from village_bank.domain.models import GroupSettings, Loan, LoanPayment, LoanTotals
from village_bank.infrastructure.observability.metrics import degraded_totals_counter
from village_bank.utils.date_utils import parse_timestamp, utc_now, whole_days_between

logger = logging.getLogger(__name__)

Timestamp = Union[str, datetime, None]


def round_money(value: Decimal) -> int:
    """Round to whole currency units, half away from zero"""
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _to_decimal(value) -> Decimal:
    # str() first so floats like 0.1 keep their short repr instead of binary noise
    return value if isinstance(value, Decimal) else Decimal(str(value))


def compute_loan_totals(
    principal: Union[int, Decimal],
    disbursed_at: Timestamp,
    interest_percent: Union[int, float, Decimal],
    loan_period_days: int,
    grace_period_days: int = 0,
    as_of: Timestamp = None,
    payments: Iterable[LoanPayment] = (),
) -> LoanTotals:
    """
    Compute what a loan owes as of one instant.

    Rules:
    - One base period of interest always applies once disbursed
    - Past the grace end, every started loan period adds another period
    - Interest is simple: principal * rate * periods, never on unpaid interest
    - Every supplied payment counts toward paid (no as_of filtering)

    An unparseable disbursement date does not raise: disbursement is taken
    to be as_of and the result is flagged with degraded=True.

    Example:
        10000 at 20%, 30-day period, 5 grace days
        as_of = day 0  -> periods 1, gross_due 12000
        as_of = day 40 -> 5 days past grace end, periods 2, gross_due 14000
    """
    if loan_period_days <= 0:
        raise ValidationError(f"loan_period_days must be positive, got {loan_period_days}")
    grace_days = max(0, grace_period_days or 0)

    now = parse_timestamp(as_of) if as_of is not None else utc_now()
    if now is None:
        raise ValidationError(f"Invalid evaluation instant: {as_of!r}")

    principal_dec = _to_decimal(principal)
    rate = max(Decimal(0), _to_decimal(interest_percent)) / Decimal(100)
    paid = sum((_to_decimal(p.amount) for p in payments), Decimal(0))

    disbursed = parse_timestamp(disbursed_at)
    degraded = disbursed is None
    if degraded:
        degraded_totals_counter.inc()
        logger.warning(
            "Invalid disbursement date, computing from evaluation instant",
            extra={"disbursed_at": str(disbursed_at), "as_of": now.isoformat()},
        )
        disbursed = now

    due_at = disbursed + timedelta(days=loan_period_days)
    grace_end_at = due_at + timedelta(days=grace_days)

    periods = 1
    if not degraded and now > grace_end_at:
        extra_days = whole_days_between(grace_end_at, now)
        periods += math.ceil(extra_days / loan_period_days)

    gross_due = principal_dec * (1 + rate * periods)
    if degraded:
        outstanding = round_money(gross_due)
    else:
        outstanding = max(0, round_money(gross_due - paid))

    return LoanTotals(
        due_at=due_at,
        grace_end_at=grace_end_at,
        periods=periods,
        interest_percent=float(interest_percent),
        loan_period_days=loan_period_days,
        principal=round_money(principal_dec),
        gross_due=round_money(gross_due),
        paid=round_money(paid),
        outstanding=outstanding,
        in_grace=degraded or now <= grace_end_at,
        overdue_blocks=max(0, periods - 1),
        degraded=degraded,
    )


def loan_totals_for(
    loan: Loan,
    group_settings: Optional[GroupSettings] = None,
    payments: Iterable[LoanPayment] = (),
    as_of: Timestamp = None,
) -> LoanTotals:
    """Resolve a loan's effective interest parameters and run the engine"""
    if group_settings is not None:
        interest_percent = group_settings.loan_interest_percent
        loan_period_days = group_settings.loan_period_days
        group_grace = group_settings.grace_period_days
    else:
        interest_percent = settings.default_loan_interest_percent
        loan_period_days = settings.default_loan_period_days
        group_grace = settings.default_grace_period_days

    # Loan override wins, including an explicit zero
    grace_days = loan.grace_period_days if loan.grace_period_days is not None else group_grace

    return compute_loan_totals(
        principal=loan.principal,
        disbursed_at=loan.disbursed_at or loan.created_at,
        interest_percent=interest_percent,
        loan_period_days=loan_period_days,
        grace_period_days=grace_days or 0,
        as_of=as_of,
        payments=payments,
    )

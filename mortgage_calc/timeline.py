"""Construction timeline for building-under-construction (BUC) purchases.

The construction period is derived from the Option to Purchase (OTP) date and
the expected Temporary Occupation Permit (TOP) date, then spread over the six
construction-progress stages by fixed weights. Each stage duration is rounded
up on its own, so the durations can add up to slightly more than the
construction period.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import ROUND_CEILING, Decimal
from typing import List, Optional

from .constants import (
    CONSTRUCTION_STAGES,
    CONSTRUCTION_WEIGHT_BASIS,
    CSC_LABEL,
    CSC_MONTHS_AFTER_TOP,
    CSC_PERCENT,
    DEFAULT_CONSTRUCTION_MONTHS,
    OTP_LABEL,
    OTP_MONTH,
    OTP_PERCENT,
    SPA_LABEL,
    SPA_MONTH,
    SPA_PERCENT,
    TOP_LABEL,
    TOP_PERCENT,
)
from .data_models import ConstructionMilestone, Timeline

logger = logging.getLogger(__name__)


def derive_timeline(otp_date: Optional[date], top_date: Optional[date]) -> Timeline:
    """Return the construction period between the S&P signing and TOP.

    Without both dates the default of 37 months is used. Otherwise the whole
    OTP-to-TOP span is converted to months (365-day years, rounded down) and
    the OTP month and the two S&P months are taken off.

    Raises
    ------
    ValueError
        If the TOP date leaves no construction months after the OTP.
    """
    if otp_date is None or top_date is None:
        return Timeline(construction_months=DEFAULT_CONSTRUCTION_MONTHS, timeline_calculated=False)

    total_days = (top_date - otp_date).days
    months_from_otp_to_top = (total_days * 12) // 365
    construction_months = months_from_otp_to_top - OTP_MONTH - SPA_MONTH
    if construction_months <= 0:
        raise ValueError(
            f"TOP date {top_date.isoformat()} must be more than three months after OTP date {otp_date.isoformat()}"
        )
    logger.debug("Timeline %s -> %s: %d construction months", otp_date, top_date, construction_months)
    return Timeline(construction_months=construction_months, timeline_calculated=True)


def allocate_milestone_timings(construction_months: int) -> List[int]:
    """Split the construction period into the six stage durations (months)."""
    durations = []
    for _, _, weight in CONSTRUCTION_STAGES:
        share = Decimal(construction_months) * weight / CONSTRUCTION_WEIGHT_BASIS
        durations.append(int(share.to_integral_value(rounding=ROUND_CEILING)))
    return durations


def build_milestones(purchase_price: Decimal, timeline: Timeline) -> List[ConstructionMilestone]:
    """Return the full payment catalogue with amounts and project months.

    OTP and S&P are paid in months 1 and 2 from cash/CPF. Each construction
    stage completes its duration after the previous one, TOP falls at the end
    of construction and CSC twelve months after TOP.
    """

    def amount(percent: Decimal) -> Decimal:
        return purchase_price * percent / Decimal(100)

    milestones = [
        ConstructionMilestone(OTP_LABEL, OTP_PERCENT, True, False, False, OTP_MONTH, 1, amount(OTP_PERCENT)),
        ConstructionMilestone(SPA_LABEL, SPA_PERCENT, True, False, False, SPA_MONTH, 1, amount(SPA_PERCENT)),
    ]
    month = SPA_MONTH
    durations = allocate_milestone_timings(timeline.construction_months)
    for (label, percent, _), duration in zip(CONSTRUCTION_STAGES, durations):
        month += duration
        milestones.append(
            ConstructionMilestone(label, percent, False, False, False, month, duration, amount(percent))
        )
    milestones.append(
        ConstructionMilestone(TOP_LABEL, TOP_PERCENT, False, True, False, month, CSC_MONTHS_AFTER_TOP, amount(TOP_PERCENT))
    )
    milestones.append(
        ConstructionMilestone(
            CSC_LABEL, CSC_PERCENT, False, False, True, month + CSC_MONTHS_AFTER_TOP, 0, amount(CSC_PERCENT)
        )
    )
    return milestones

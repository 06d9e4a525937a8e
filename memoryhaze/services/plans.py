"""Plan tier definitions and media limits"""

from typing import Any, Dict, Optional, Union

from ..models.gift import Plan
from ..models.grant import GRANT_WINDOWS

PLAN_MOMENTUM = Plan.MOMENTUM.value
PLAN_EVERLASTING = Plan.EVERLASTING.value

PLAN_LIMITS: Dict[str, Dict[str, Any]] = {
    PLAN_MOMENTUM: {
        "name": "Momentum",
        "price": 499,
        "price_display": "₹499",
        "photos": 4,
        "videos": 0,
        "revisions": 0,
        "access_days": GRANT_WINDOWS[Plan.MOMENTUM].days,
        "priority_delivery": False,
        "downloadable_mp3": False,
    },
    PLAN_EVERLASTING: {
        "name": "Everlasting",
        "price": 599,
        "price_display": "₹599",
        "photos": 50,
        "videos": 5,
        "revisions": 2,
        "access_days": GRANT_WINDOWS[Plan.EVERLASTING].days,
        # 48h turnaround
        "priority_delivery": True,
        "downloadable_mp3": True,
    },
}


def get_plan_limits(plan: Union[Plan, str]) -> Dict[str, Any]:
    """Return limits for a plan. Unknown plans get momentum limits."""
    key = plan.value if isinstance(plan, Plan) else str(plan)
    return PLAN_LIMITS.get(key, PLAN_LIMITS[PLAN_MOMENTUM]).copy()


def max_photos(plan: Optional[Union[Plan, str]], cap: Optional[int] = None) -> int:
    """
    Photos allowed on a submission.

    The plan allowance is bounded by the form cap from settings; with no plan
    chosen yet only the cap applies.
    """
    if plan is None:
        return cap if cap is not None else PLAN_LIMITS[PLAN_MOMENTUM]["photos"]
    allowance = get_plan_limits(plan)["photos"]
    if cap is None:
        return allowance
    return min(allowance, cap)

"""Monthly limit decision and alert message text."""

from __future__ import annotations

import html

from .models.alerts import AlertDecision, PeriodKey
from .utils import fmt_bytes, fmt_percent

ALERT_SUBJECT = "Data Guard - Data Usage Limit Exceeded"


def decide(
    monthly_usage_bytes: int,
    limit_bytes: int | None,
    current_period: PeriodKey,
    last_alerted_period: PeriodKey | None,
) -> AlertDecision:
    """Decide whether this run should send the limit alert.

    At most one alert is sent per period: once ``last_alerted_period`` equals
    ``current_period`` the decision stays negative however far usage grows.
    """
    limit = max(0, int(limit_bytes or 0))
    usage = max(0, int(monthly_usage_bytes or 0))
    should_alert = (
        limit > 0
        and usage > limit
        and (last_alerted_period is None or last_alerted_period != current_period)
    )
    return AlertDecision(
        should_alert=should_alert,
        period_key=current_period,
        monthly_usage_bytes=usage,
        limit_bytes=limit,
    )


def build_alert_message(decision: AlertDecision, device: str) -> str:
    return (
        "Hello,\n\n"
        "This is an automated alert from Data Guard.\n\n"
        f"The device '{device}' has exceeded its configured data usage limit.\n\n"
        f"Period: {decision.period_key}\n"
        f"Used: {fmt_bytes(decision.monthly_usage_bytes)} "
        f"({fmt_percent(decision.monthly_usage_bytes, decision.limit_bytes)} "
        "of limit)\n"
        f"Limit: {fmt_bytes(decision.limit_bytes)}\n\n"
        "Please check your usage to avoid unexpected charges.\n\n"
        "Thank you,\nData Guard"
    )


def build_alert_html(decision: AlertDecision, device: str) -> str:
    used = fmt_bytes(decision.monthly_usage_bytes)
    limit = fmt_bytes(decision.limit_bytes)
    pct = fmt_percent(decision.monthly_usage_bytes, decision.limit_bytes)
    return (
        f"<b>ALERT</b> Data limit exceeded on <code>{html.escape(device)}</code>\n"
        f"Period: {decision.period_key} | Used: {html.escape(used)} ({pct}) | "
        f"Limit: {html.escape(limit)}"
    )

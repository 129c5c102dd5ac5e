from typing import Any

MINSECS = 60
HOURSECS = 60 * MINSECS
DAYSECS = 24 * HOURSECS
YEARSECS = 365 * DAYSECS


def _unit(value, singular: str, plural: str) -> str:
    if not value:
        return ""
    number = int(value) if float(value).is_integer() else value
    return f"{number} {singular if value == 1 else plural}"


def format_time(totalsecs: Any) -> str:
    """
    Human readable duration, e.g. "2 mins 3 secs".

    Only the two most significant units are shown, starting from the first
    non-zero one. None or non-numeric input is treated as zero ("now").
    """
    try:
        totalsecs = abs(float(totalsecs))
    except (TypeError, ValueError):
        totalsecs = 0.0

    years, remainder = divmod(totalsecs, YEARSECS)
    days, remainder = divmod(remainder, DAYSECS)
    hours, remainder = divmod(remainder, HOURSECS)
    mins, remainder = divmod(remainder, MINSECS)
    secs = round(remainder, 2)

    oyears = _unit(years, "year", "years")
    odays = _unit(days, "day", "days")
    ohours = _unit(hours, "hour", "hours")
    omins = _unit(mins, "min", "mins")
    osecs = _unit(secs, "sec", "secs")

    if years:
        return f"{oyears} {odays}".strip()
    if days:
        return f"{odays} {ohours}".strip()
    if hours:
        return f"{ohours} {omins}".strip()
    if mins:
        return f"{omins} {osecs}".strip()
    if secs:
        return osecs
    return "now"

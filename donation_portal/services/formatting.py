from datetime import datetime


def format_inr(amount) -> str:
    """Indian digit grouping: 1234567 -> "12,34,567" """
    amount = int(amount or 0)
    sign = "-" if amount < 0 else ""
    digits = str(abs(amount))
    if len(digits) <= 3:
        return sign + digits

    head, tail = digits[:-3], digits[-3:]
    groups = []
    while len(head) > 2:
        groups.insert(0, head[-2:])
        head = head[:-2]
    if head:
        groups.insert(0, head)
    return sign + ",".join(groups + [tail])


def format_long_date(value: datetime) -> str:
    """e.g. "5 March 2025" """
    return f"{value.day} {value.strftime('%B %Y')}"

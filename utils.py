import re
import uuid
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from ledger.errors import ValidationError

CENT = Decimal("0.01")
# Numeric(18, 2) holds 16 integer digits
MAX_MONEY = Decimal(10) ** 16


class IdGenerator:
    """Primary keys for every ledger record: random UUID4 strings."""

    def new(self) -> str:
        return str(uuid.uuid4())


id_generator = IdGenerator()


def new_id() -> str:
    return id_generator.new()


def local_now() -> datetime:
    """Server-local wall clock, naive. Calendar days and months are cut on it."""
    return datetime.now()


def month_bounds(moment: datetime):
    start = moment.replace(day=1, hour=0, minute=0, second=0, microsecond=0)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def to_money(value, field_name: str = "amount") -> Decimal:
    """Convert user input to a 2dp Decimal, raising ValidationError on junk."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field_name} is required")
    try:
        amount = Decimal(str(value))
        if not amount.is_finite():
            raise ValidationError(f"Invalid {field_name} format")
        if abs(amount) < MAX_MONEY:
            amount = amount.quantize(CENT, rounding=ROUND_HALF_UP)
        if abs(amount) >= MAX_MONEY:
            raise ValidationError(f"{field_name} is too large")
        return amount
    except (InvalidOperation, ValueError, TypeError):
        raise ValidationError(f"Invalid {field_name} format")


def positive_money(value, field_name: str = "amount") -> Decimal:
    amount = to_money(value, field_name)
    if amount <= 0:
        raise ValidationError(f"{field_name} must be greater than 0")
    return amount


def validate_mobile(mobile):
    return re.match(r'^\+?\d{9,15}$', mobile or "") is not None

import random
import re
import time
from datetime import datetime, timezone
from typing import Optional
from uuid import uuid4 as _uuid4

ORDER_ID_RE = re.compile(r"^[A-Za-z0-9\-_.]{3,50}$")


def uuid4() -> str:
    return str(_uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    # sqlite hands back naive datetimes
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def generate_order_id() -> str:
    timestamp = str(int(time.time() * 1000))[-6:]
    return f"BK-{timestamp}{random.randint(0, 999):03d}"


def is_valid_order_id(order_id: str) -> bool:
    return bool(order_id) and bool(ORDER_ID_RE.match(order_id))


def payment_reference(prefix: str = "opay") -> str:
    suffix = "".join(random.choices("abcdefghijklmnopqrstuvwxyz0123456789", k=9))
    return f"{prefix}_{int(time.time() * 1000)}_{suffix}"

from ..errors import Expired, NotReadyYet
from .leaf_encoder import MAX_UINT64

# "Never expires". Still compared with strict less-than.
UNBOUNDED_END_TIME = MAX_UINT64


def _require_uint64(name: str, value: int) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value <= MAX_UINT64:
        raise ValueError(f"{name} is not a uint64 timestamp: {value!r}")
    return value


def check_window(begin_time: int, end_time: int, now: int) -> None:
    """
    Accepts iff begin_time <= now < end_time.

    :raises NotReadyYet: now precedes the window.
    :raises Expired: now is at or past the window end.
    """
    begin_time = _require_uint64("begin_time", begin_time)
    end_time = _require_uint64("end_time", end_time)
    now = _require_uint64("now", now)

    if now < begin_time:
        raise NotReadyYet(f"Claim window opens at {begin_time}, now is {now}")
    if now >= end_time:
        raise Expired(f"Claim window closed at {end_time}, now is {now}")


def is_open(begin_time: int, end_time: int, now: int) -> bool:
    try:
        check_window(begin_time, end_time, now)
    except (NotReadyYet, Expired):
        return False
    return True

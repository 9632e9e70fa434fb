"""Host port allocation for direct-mapped (tcp/udp) services."""
from typing import Iterable

from .errors import PortRangeExhaustedError


def allocate_ports(used: Iterable[int], count: int, start: int = 40000, end: int = 49999) -> list[int]:
    """
    Return `count` free host ports from the inclusive range [start, end].

    First-fit ascending scan over the range, skipping anything in `used`.
    The result is derived from current state only, so the same `used` set
    always yields the same ports.
    """
    if count <= 0:
        return []

    taken = set(used)
    available = sum(1 for port in range(start, end + 1) if port not in taken)
    if available < count:
        raise PortRangeExhaustedError(count, available)

    allocated = []
    for port in range(start, end + 1):
        if port in taken:
            continue
        allocated.append(port)
        if len(allocated) == count:
            break
    return allocated

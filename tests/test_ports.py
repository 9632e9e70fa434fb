"""Tests for host port allocation."""
import pytest

from vuln_pkg.errors import PortRangeExhaustedError
from vuln_pkg.ports import allocate_ports


def test_allocates_first_free_ports_in_order():
    assert allocate_ports({40000, 40001}, 2) == [40002, 40003]


def test_skips_holes_in_used_set():
    assert allocate_ports({40000, 40002}, 3) == [40001, 40003, 40004]


def test_same_input_same_output():
    used = {40003, 40000}
    assert allocate_ports(used, 4) == allocate_ports(used, 4)


def test_zero_ports_requested():
    assert allocate_ports({40000}, 0) == []


def test_exhausted_range_raises_instead_of_partial_list():
    with pytest.raises(PortRangeExhaustedError) as exc_info:
        allocate_ports({100, 101}, 2, start=100, end=102)

    assert exc_info.value.requested == 2
    assert exc_info.value.available == 1


def test_uses_full_inclusive_range():
    assert allocate_ports(set(), 3, start=100, end=102) == [100, 101, 102]

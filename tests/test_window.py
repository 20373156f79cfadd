import pytest

from merkle_airdrop.claim.window import UNBOUNDED_END_TIME, check_window, is_open
from merkle_airdrop.errors import Expired, NotReadyYet


class TestCheckWindow:

    def test_inside(self):
        check_window(100, 200, 150)

    def test_begin_inclusive(self):
        check_window(100, 200, 100)

    def test_end_exclusive(self):
        with pytest.raises(Expired):
            check_window(100, 200, 200)

    def test_before_begin(self):
        with pytest.raises(NotReadyYet):
            check_window(100, 200, 99)

    def test_after_end(self):
        with pytest.raises(Expired):
            check_window(100, 200, 10**9)

    def test_unbounded_end(self):
        check_window(0, UNBOUNDED_END_TIME, UNBOUNDED_END_TIME - 1)
        with pytest.raises(Expired):
            check_window(0, UNBOUNDED_END_TIME, UNBOUNDED_END_TIME)

    def test_empty_window_is_never_open(self):
        with pytest.raises(Expired):
            check_window(100, 100, 100)

    def test_not_ready_is_reported_before_expired(self):
        # Inverted windows: now is both too early and past the end.
        with pytest.raises(NotReadyYet):
            check_window(200, 100, 150)

    @pytest.mark.parametrize("begin, end, now", [
        (-1, 10, 5),
        (0, 2**64, 5),
        (0, 10, -5),
        (0, 10, 2**64),
    ])
    def test_out_of_uint64_range(self, begin, end, now):
        with pytest.raises(ValueError):
            check_window(begin, end, now)

    def test_is_open(self):
        assert is_open(100, 200, 150)
        assert not is_open(100, 200, 50)
        assert not is_open(100, 200, 250)

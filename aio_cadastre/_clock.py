import time as _time
from dataclasses import dataclass

from aio_cadastre._env import IS_UNIT_TEST


class _ClockMock:
    """Mock alternative to the monotonic clock."""

    __slots__ = ("_time",)

    def __init__(self) -> None:
        self._time = 0.0

    def mock_advance(self, delay: float) -> None:
        self._time += delay

    def mock_time(self) -> float:
        return self._time


if IS_UNIT_TEST:
    _clock_mock = _ClockMock()
    time = _clock_mock.mock_time
    advance = _clock_mock.mock_advance
else:
    time = _time.monotonic

    def advance(delay: float) -> None:
        msg = "the clock can only be advanced in unit tests"
        raise RuntimeError(msg)


@dataclass(kw_only=True, slots=True, frozen=True, repr=False, order=True)
class Instant:
    """
    Measurement of a monotonic clock.

    Attributes:
        when: seconds on the monotonic clock (the reference point is unspecified)
    """

    when: float

    @classmethod
    def now(cls) -> "Instant":
        return cls(when=time())

    @property
    def elapsed_secs_since(self) -> float:
        return time() - self.when

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.when:.02f})"

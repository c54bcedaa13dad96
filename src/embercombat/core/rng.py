"""Deterministic RNG wrappers built on top of random.Random."""
from __future__ import annotations

from collections import deque
from random import Random
from typing import Any, Deque, Dict, List, Mapping, MutableSequence, Protocol, Sequence, Tuple, TypeVar, TypedDict

T_co = TypeVar("T_co")

_TRACE_LIMIT = 256


class RNGStatePayload(TypedDict):
    seed: int
    draws: int
    state: List[Any]


class RandomSource(Protocol):
    """Uniform random source consumed by the combat engine."""

    def float(self, tag: str) -> float: ...

    def int(self, tag: str, low: int, high: int) -> int: ...

    def pick(self, tag: str, seq: Sequence[T_co]) -> T_co: ...


class RNG:
    """Wrapper around random.Random that provides deterministic, tagged helpers."""

    def __init__(self, seed: int, *, trace: bool = False) -> None:
        self._seed = seed
        self._random = Random(seed)
        self._draws = 0
        self._trace: Deque[Tuple[str, float]] | None = deque(maxlen=_TRACE_LIMIT) if trace else None

    @property
    def seed(self) -> int:
        return self._seed

    @property
    def draws(self) -> int:
        """Number of values drawn since construction or the last restore."""
        return self._draws

    def float(self, tag: str = "default") -> float:
        """Return the next float in [0.0, 1.0); ``tag`` names the purpose of the draw."""
        value = self._random.random()
        self._record(tag, value)
        return value

    def int(self, tag: str, low: int, high: int) -> int:
        """Return an integer N such that low <= N <= high (low when the range is inverted)."""
        if high < low:
            return low
        value = self._random.randint(low, high)
        self._record(tag, value)
        return value

    def pick(self, tag: str, seq: Sequence[T_co]) -> T_co:
        """Return a random element from the non-empty sequence."""
        if not seq:
            raise ValueError("Cannot choose from an empty sequence.")
        index = self.int(tag, 0, len(seq) - 1)
        return seq[index]

    def randint(self, a: int, b: int) -> int:
        """Return a random integer N such that a <= N <= b."""
        return self.int("default", a, b)

    def random(self) -> float:
        """Return the next random floating point number in the range [0.0, 1.0)."""
        return self.float("default")

    def choice(self, seq: Sequence[T_co]) -> T_co:
        """Return a random element from the non-empty sequence."""
        return self.pick("default", seq)

    def shuffle(self, seq: MutableSequence[T_co]) -> None:
        """Shuffle the sequence in-place."""
        self._random.shuffle(seq)
        self._draws += 1

    def trace(self) -> List[Tuple[str, float]]:
        """Return the recent (tag, value) draws when tracing is enabled."""
        return list(self._trace or ())

    def export_state(self) -> RNGStatePayload:
        """Return a JSON-safe snapshot of the generator."""
        version, internal, gauss_next = self._random.getstate()
        return {"seed": self._seed, "draws": self._draws, "state": [version, list(internal), gauss_next]}

    def restore_state(self, payload: Mapping[str, Any]) -> None:
        """Restore a snapshot produced by :meth:`export_state`."""
        state = payload.get("state")
        if not isinstance(state, (list, tuple)) or len(state) != 3:
            raise ValueError("RNG state must be a [version, internal, gauss_next] triple.")
        version, internal, gauss_next = state
        if not isinstance(internal, (list, tuple)):
            raise ValueError("RNG internal state must be a list of integers.")
        try:
            self._random.setstate((version, tuple(int(value) for value in internal), gauss_next))
        except (TypeError, ValueError) as exc:
            raise ValueError(f"RNG state rejected: {exc}") from exc
        seed = payload.get("seed", self._seed)
        draws = payload.get("draws", 0)
        self._seed = seed if isinstance(seed, int) else self._seed
        self._draws = draws if isinstance(draws, int) and draws >= 0 else 0

    def _record(self, tag: str, value: float) -> None:
        self._draws += 1
        if self._trace is not None:
            self._trace.append((tag, value))


class ScriptedRNG:
    """
    Replays queued values per tag.

    Tags without a queued value fall back to ``default_float`` (or to a seeded
    RNG when ``fallback_seed`` is given). Integer draws scale the float into the
    requested range, so a scripted 0.0 always picks the first element.
    """

    def __init__(
        self,
        script: Mapping[str, Sequence[float]] | None = None,
        *,
        default_float: float = 0.5,
        fallback_seed: int | None = None,
    ) -> None:
        self._queues: Dict[str, Deque[float]] = {
            tag: deque(values) for tag, values in (script or {}).items()
        }
        self._default = default_float
        self._fallback = RNG(fallback_seed) if fallback_seed is not None else None
        self.calls: List[str] = []

    def push(self, tag: str, *values: float) -> None:
        self._queues.setdefault(tag, deque()).extend(values)

    def float(self, tag: str = "default") -> float:
        self.calls.append(tag)
        queue = self._queues.get(tag)
        if queue:
            return min(max(queue.popleft(), 0.0), 0.9999999)
        if self._fallback is not None:
            return self._fallback.float(tag)
        return self._default

    def int(self, tag: str, low: int, high: int) -> int:
        if high < low:
            return low
        draw = self.float(tag)
        return low + int(draw * (high - low + 1))

    def pick(self, tag: str, seq: Sequence[T_co]) -> T_co:
        if not seq:
            raise ValueError("Cannot choose from an empty sequence.")
        return seq[self.int(tag, 0, len(seq) - 1)]

    def random(self) -> float:
        return self.float("default")

    def randint(self, a: int, b: int) -> int:
        return self.int("default", a, b)

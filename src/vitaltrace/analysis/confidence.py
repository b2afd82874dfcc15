from __future__ import annotations

import math
from typing import Iterable, List, Optional

from ..core.models import RateReading, round_rate

DEFAULT_MAX_CONFIDENT_READINGS = 50


class ConfidentReadingSet:
    """
    Keep the most confident rate readings seen during a capture.

    Notes
    -----
    - Readings with ``confidence <= 0`` or a non-finite value or confidence
      never qualify.
    - While the set has room, every qualifying reading is stored.
    - Once full, a new reading replaces the lowest-confidence entry, but only
      when it is strictly more confident than that entry.

    The reported measurement is the plain mean of the stored values.
    """

    def __init__(self, capacity: int = DEFAULT_MAX_CONFIDENT_READINGS) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = int(capacity)
        self._readings: List[RateReading] = []

    def offer(self, reading: RateReading) -> bool:
        """
        Offer ``reading`` to the set.

        Returns
        -------
        bool
            True when the reading was stored.
        """
        if not (math.isfinite(reading.value) and math.isfinite(reading.confidence)):
            return False
        if not reading.confidence > 0:
            return False

        if len(self._readings) < self.capacity:
            self._readings.append(reading)
            return True

        min_index = min(
            range(len(self._readings)),
            key=lambda idx: self._readings[idx].confidence,
        )
        if reading.confidence > self._readings[min_index].confidence:
            self._readings[min_index] = reading
            return True
        return False

    def offer_all(self, readings: Iterable[RateReading]) -> int:
        """Convenience method to offer several readings; returns how many were kept."""
        return sum(1 for reading in readings if self.offer(reading))

    def average(self) -> Optional[float]:
        """Mean of the stored values, or None when nothing qualified yet."""
        if not self._readings:
            return None
        return sum(r.value for r in self._readings) / len(self._readings)

    def average_bpm(self) -> Optional[int]:
        """Average rounded to whole beats (or breaths) per minute."""
        avg = self.average()
        if avg is None:
            return None
        return round_rate(avg)

    @property
    def readings(self) -> List[RateReading]:
        return list(self._readings)

    def __len__(self) -> int:
        return len(self._readings)

    def clear(self) -> None:
        self._readings.clear()

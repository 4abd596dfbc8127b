from __future__ import annotations
from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class Colorf32:
    """Working RGBA colour used while resampling. Channels nominally in [0, 1]."""
    r: float
    g: float
    b: float
    a: float

    @classmethod
    def from_array(cls, values) -> "Colorf32":
        r, g, b, a = (float(v) for v in np.asarray(values, dtype=np.float32))
        return cls(r, g, b, a)

    def to_array(self) -> np.ndarray:
        return np.array([self.r, self.g, self.b, self.a], dtype=np.float32)

from __future__ import annotations

import numbers
from typing import Any, Dict, List, Optional, Tuple

import numpy as np

from contract_engine.core.models.base import KernelModel

DEFAULT_FUTURE_POINTS = 10


def _first_present(item: Dict[str, Any], *keys: str) -> Any:
    for k in keys:
        if item.get(k) is not None:
            return item[k]
    return None


def xy_points(data: Any) -> Optional[List[Tuple[float, float]]]:
    """
    [{x, y}] or [{timestamp, value}] records; bare numbers use their
    1-based position as x. None if any point is not numeric.
    """
    points: List[Tuple[float, float]] = []
    for i, item in enumerate(data, start=1):
        if isinstance(item, dict):
            x = _first_present(item, "x", "timestamp")
            y = _first_present(item, "y", "value")
        else:
            x, y = i, item
        for v in (x, y):
            if isinstance(v, bool) or not isinstance(v, numbers.Real):
                return None
        points.append((float(x), float(y)))
    return points


def future_points(options: Dict[str, Any]) -> Optional[int]:
    n = options.get("futurePoints", DEFAULT_FUTURE_POINTS)
    if isinstance(n, bool) or not isinstance(n, int) or n < 0:
        return None
    return n


class LinearRegressionModel(KernelModel):
    type_name = "linear-regression"

    async def compute_normal(self, data: Any, options: Dict[str, Any]) -> Any:
        if not isinstance(data, (list, tuple)) or len(data) < 2:
            return {"error": "Insufficient data for linear regression"}

        points = xy_points(data)
        if points is None:
            return {"error": "Invalid data for linear regression"}
        n_future = future_points(options)
        if n_future is None:
            return {"error": "futurePoints must be a non-negative integer"}

        xs = np.array([p[0] for p in points])
        ys = np.array([p[1] for p in points])
        if np.ptp(xs) == 0:
            return {"error": "Insufficient data for linear regression"}

        slope, intercept = np.polyfit(xs, ys, 1)
        last_x = points[-1][0]
        future = [
            {"x": last_x + i + 1, "y": float(slope * (last_x + i + 1) + intercept), "predicted": True}
            for i in range(n_future)
        ]
        return self._envelope(
            {"slope": float(slope), "intercept": float(intercept), "futureData": future},
            list(data),
            options,
        )

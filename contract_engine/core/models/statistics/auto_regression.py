from __future__ import annotations

from typing import Any, Dict, List

import numpy as np

from contract_engine.core.models.base import KernelModel
from contract_engine.core.models.statistics.linear_regression import future_points, xy_points


def _positive_int(v: Any) -> bool:
    return isinstance(v, int) and not isinstance(v, bool) and v > 0


class AutoRegressionModel(KernelModel):
    """
    AR model  y[t] = c + sum_k a_k * y[t - k*lag],  k = 1..order,
    fitted by least squares. Forecasts feed back their own predictions.
    """

    type_name = "auto-regression"

    async def compute_normal(self, data: Any, options: Dict[str, Any]) -> Any:
        lag = options.get("lag", 1)
        order = options.get("order", 1)
        if not _positive_int(lag) or not _positive_int(order):
            return {"error": "Lag and order must be positive integers"}

        span = lag * order
        if not isinstance(data, (list, tuple)) or len(data) - span < order + 1:
            return {"error": "Insufficient data for auto-regression"}

        points = xy_points(data)
        if points is None:
            return {"error": "Invalid data for auto-regression"}
        n_future = future_points(options)
        if n_future is None:
            return {"error": "futurePoints must be a non-negative integer"}

        ys = [p[1] for p in points]
        rows = [[1.0] + [ys[t - k * lag] for k in range(1, order + 1)] for t in range(span, len(ys))]
        design = np.array(rows)
        target = np.array(ys[span:])
        coefficients, *_ = np.linalg.lstsq(design, target, rcond=None)

        history: List[float] = list(ys)
        last_x = points[-1][0]
        future = []
        for i in range(n_future):
            lagged = [history[len(history) - k * lag] for k in range(1, order + 1)]
            y = float(coefficients[0] + np.dot(coefficients[1:], lagged))
            history.append(y)
            future.append({"x": last_x + i + 1, "y": y, "predicted": True})

        return self._envelope(
            {"coefficients": [float(c) for c in coefficients], "futureData": future},
            list(data),
            options,
            lag=lag,
            order=order,
        )

from __future__ import annotations

import math
import numbers
from typing import Any, Dict, List, Optional

from contract_engine.core.models.base import KernelModel, item_value


def numeric_values(data: Any) -> Optional[List[float]]:
    """Values of a non-empty numeric series, or None if the series is unusable."""
    if not isinstance(data, (list, tuple)) or not data:
        return None
    values = [item_value(item) for item in data]
    for v in values:
        if isinstance(v, bool) or not isinstance(v, numbers.Real) or not math.isfinite(v):
            return None
    return [float(v) for v in values]


class SumModel(KernelModel):
    type_name = "sum"

    async def compute_normal(self, data: Any, options: Dict[str, Any]) -> Any:
        values = numeric_values(data)
        if values is None:
            return {"error": "No data provided"}
        return self._envelope(math.fsum(values), values, options)

    async def compute_accelerated(self, data: Any, options: Dict[str, Any]) -> Any:
        values = numeric_values(data)
        if values is None:
            return {"error": "No data provided"}
        result = await self.host.sum(values)
        return self._envelope(result, values, options)

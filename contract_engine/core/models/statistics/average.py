from __future__ import annotations

import math
from typing import Any, Dict

from contract_engine.core.models.base import KernelModel
from contract_engine.core.models.statistics.sum import numeric_values


class AverageModel(KernelModel):
    type_name = "average"

    async def compute_normal(self, data: Any, options: Dict[str, Any]) -> Any:
        values = numeric_values(data)
        if values is None:
            return {"error": "No data provided"}
        return self._envelope(math.fsum(values) / len(values), values, options)

    async def compute_accelerated(self, data: Any, options: Dict[str, Any]) -> Any:
        values = numeric_values(data)
        if values is None:
            return {"error": "No data provided"}
        result = await self.host.average(values)
        return self._envelope(result, values, options)

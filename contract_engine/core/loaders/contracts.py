from __future__ import annotations

from typing import Awaitable, Callable, Protocol, Union, runtime_checkable

from contract_engine.core.contracts.models import Contract
from contract_engine.core.models.base import Model


@runtime_checkable
class Loader(Protocol):
    """
    Minimal stable contract for a runtime backend.
    Turns a contract into a Model; may suspend while fetching or compiling.
    """
    runtime_type: str

    async def load(self, contract: Contract) -> Model:
        ...


LoaderFn = Callable[[Contract], Awaitable[Model]]

LoaderLike = Union[Loader, LoaderFn]

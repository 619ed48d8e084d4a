import asyncio
from dataclasses import dataclass
from typing import Awaitable, Generic, List, Optional, Sequence, TypeVar


T = TypeVar("T")


@dataclass
class Settled(Generic[T]):
    """Outcome of one awaitable run by settle_all: either a value or the error it raised."""
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def settle_all(aws: Sequence[Awaitable[T]]) -> List[Settled[T]]:
    """
    Run awaitables concurrently and report each outcome individually.

    One failure never cancels or hides the others. Results keep the input order.
    Cancellation of the caller is still propagated.
    """
    results = await asyncio.gather(*aws, return_exceptions=True)

    settled: List[Settled[T]] = []
    for result in results:
        if isinstance(result, asyncio.CancelledError):
            raise result
        if isinstance(result, BaseException):
            settled.append(Settled(error=result))
        else:
            settled.append(Settled(value=result))
    return settled


async def run_with_deadline(aw: Awaitable[T], timeout: float, default: T) -> T:
    """Await with a deadline; on expiry the awaitable is cancelled and default is returned."""
    try:
        return await asyncio.wait_for(aw, timeout=timeout)
    except asyncio.TimeoutError:
        return default

"""
All-settle aggregation for batches of independent coroutines
"""
import asyncio
from dataclasses import dataclass
from typing import Awaitable, Generic, Iterable, List, Optional, TypeVar

T = TypeVar("T")


@dataclass
class Settled(Generic[T]):
    """Outcome of one item: a value, or the exception that ended it."""
    value: Optional[T] = None
    error: Optional[BaseException] = None

    @property
    def ok(self) -> bool:
        return self.error is None


async def _settle(aw: Awaitable[T], timeout: Optional[float]) -> Settled[T]:
    try:
        if timeout is not None:
            value = await asyncio.wait_for(aw, timeout=timeout)
        else:
            value = await aw
        return Settled(value=value)
    except asyncio.TimeoutError as e:
        return Settled(error=TimeoutError(f"timed out after {timeout:g}s") if timeout else e)
    except Exception as e:
        return Settled(error=e)


async def settle_all(awaitables: Iterable[Awaitable[T]], timeout: Optional[float] = None) -> List[Settled[T]]:
    """
    Run every awaitable concurrently and collect one outcome per item.

    One failure never cancels the others. Outcomes are returned in input
    order regardless of completion order.

    Args:
        awaitables: Independent coroutines or futures
        timeout: Optional per-item timeout in seconds; a timeout settles as an error

    Returns:
        List of Settled outcomes, aligned with the input
    """
    return list(await asyncio.gather(*(_settle(aw, timeout) for aw in awaitables)))

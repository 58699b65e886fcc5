#!/usr/bin/env python3
"""
Fallback chains and retry helpers.

A fallback chain is an ordered list of named async strategies. Each one is
turned into a tagged ``StrategyResult`` and the driver stops at the first
``SUCCESS``; ``EMPTY`` and ``ERROR`` both move on to the next strategy.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Iterable, List, Optional, Tuple, TypeVar

from newspulse.shared.types.results import Outcome, StrategyResult

logger = logging.getLogger(__name__)

T = TypeVar('T')

Strategy = Tuple[str, Callable[[], Awaitable[Any]]]


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, (list, tuple, dict, str, bytes)):
        return len(value) == 0
    return False


async def run_strategy(name: str, factory: Callable[[], Awaitable[Any]]) -> StrategyResult:
    """Run one strategy and tag its result; exceptions become ERROR results."""
    try:
        value = await factory()
    except asyncio.CancelledError:
        raise
    except Exception as e:
        logger.debug(f"Strategy {name} failed: {e}")
        return StrategyResult(Outcome.ERROR, strategy=name, error=e)

    if isinstance(value, StrategyResult):
        value.strategy = value.strategy or name
        return value
    if _is_empty(value):
        return StrategyResult(Outcome.EMPTY, value=value, strategy=name)
    return StrategyResult(Outcome.SUCCESS, value=value, strategy=name)


async def run_chain(strategies: Iterable[Strategy]) -> Tuple[Optional[StrategyResult], List[StrategyResult]]:
    """
    Walk strategies in order and stop at the first success.

    Returns:
        (winning result or None, every result produced including the winner)
    """
    attempts: List[StrategyResult] = []
    for name, factory in strategies:
        result = await run_strategy(name, factory)
        attempts.append(result)
        if result.ok:
            return result, attempts
    return None, attempts


def last_error(attempts: List[StrategyResult]) -> Optional[BaseException]:
    """Most recent exception recorded by a failed chain."""
    for result in reversed(attempts):
        if result.error is not None:
            return result.error
    return None


async def retry_async(fn: Callable[[], Awaitable[T]],
                      attempts: int = 3,
                      base_delay: float = 1.0,
                      description: str = "operation") -> T:
    """
    Call ``fn`` up to ``attempts`` times with exponential backoff.

    The delay starts at ``base_delay`` seconds and doubles after every failed
    attempt. The last exception is re-raised once attempts run out.
    """
    delay = base_delay
    for attempt in range(1, attempts + 1):
        try:
            return await fn()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            if attempt >= attempts:
                logger.warning(f"{description} failed after {attempts} attempts: {e}")
                raise
            logger.info(f"{description} attempt {attempt} failed ({e}); retrying in {delay:.1f}s")
            await asyncio.sleep(delay)
            delay *= 2
    raise RuntimeError("retry_async called with attempts < 1")

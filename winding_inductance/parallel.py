"""Fan-out of per-harmonic series terms over a bounded thread pool"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable

from winding_inductance.scaled import ScaledNumber, ScaledSum

logger = logging.getLogger(__name__)


def harmonic_sum(
    func: Callable[[int], ScaledNumber | None],
    harmonics: Iterable[int],
    max_workers: int = 1,
) -> ScaledNumber:
    """
    Evaluate `func(n)` for each harmonic and accumulate the results into one scaled sum.

    Each worker forms its complete term before adding it to the shared accumulator,
    so the partial sum is never observed in a half-updated state. Order of addition
    does not matter because the sum is only reduced once, by the caller.

    Args:
        func: Series term for harmonic `n`, or None to skip that harmonic
        harmonics: Harmonic indices to evaluate
        max_workers: Size of the thread pool; 1 evaluates in the calling thread

    Returns:
        The unreduced sum of all terms
    """
    harmonics = list(harmonics)
    total = ScaledSum()

    def work(n: int) -> None:
        term = func(n)
        if term is not None:
            total.add(term)

    if max_workers <= 1 or len(harmonics) <= 1:
        for n in harmonics:
            work(n)
    else:
        with ThreadPoolExecutor(max_workers=max_workers) as pool:
            # Consume results so that worker exceptions propagate here
            for _ in pool.map(work, harmonics):
                pass

    logger.debug(f"Summed {len(harmonics)} harmonics on {max_workers} worker(s)")
    return total.total

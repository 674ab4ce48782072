import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Iterable, Iterator, List, Sequence, Tuple, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')
R = TypeVar('R')


def chunks(seq: Sequence[T], size: int) -> Iterable[Sequence[T]]:
    for i in range(0, len(seq), size):
        yield seq[i : i + size]


def run_in_batches(items: Sequence[T], job: Callable[[T], R], batch_size: int) -> Iterator[Tuple[Sequence[T], List[R]]]:
    """
    Run `job` over `items` one fixed-size batch at a time.

    Every item of a batch is dispatched at once on its own pool; the pool is
    joined before the next batch starts, so at most `batch_size` jobs are in
    flight. Yields `(batch, results)` after each join, results in batch order.
    Jobs are expected to handle their own failures; an exception escaping a
    job propagates to the caller.
    """
    if batch_size <= 0:
        raise ValueError(f'batch_size must be positive, got {batch_size}')
    for batch in chunks(items, batch_size):
        with ThreadPoolExecutor(max_workers=len(batch)) as ex:
            futures = [ex.submit(job, item) for item in batch]
            results = [fut.result() for fut in futures]
        yield batch, results

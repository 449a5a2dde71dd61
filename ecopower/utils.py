import os
from typing import List, Optional

import numpy as np


def get_ncores(ncores: Optional[int] = None) -> int:
    """
    Resolves the size of the worker pool.

    Args:
        ncores (Optional[int]): requested number of workers. Defaults to the
            number of logical cores minus one.

    Returns:
        int: a worker count between 1 and the number of logical cores.
    """
    available = os.cpu_count() or 1
    if ncores is None:
        return max(1, available - 1)
    if not isinstance(ncores, (int, np.integer)) or ncores < 1:
        raise ValueError(f"`ncores` must be a positive integer, got {ncores}.")
    if ncores > available:
        raise ValueError(
            f"`ncores` ({ncores}) exceeds the {available} available cores."
        )
    return int(ncores)


def spawn_seeds(seed: Optional[int], n: int) -> List[int]:
    """Spawns `n` independent seeds from one `SeedSequence`."""
    if n <= 0:
        return []
    children = np.random.SeedSequence(seed).spawn(n)
    # plain ints pickle cleanly into worker processes
    return [
        int(child.generate_state(1, dtype=np.uint64)[0]) for child in children
    ]


def check_positive_int(value, name: str) -> int:
    if (
        isinstance(value, bool)
        or not isinstance(value, (int, np.integer))
        or value < 1
    ):
        raise ValueError(f"`{name}` must be a positive integer, got {value}.")
    return int(value)


def check_alpha(alpha: float) -> float:
    if not 0 < alpha < 1:
        raise ValueError(f"`alpha` must lie in (0, 1), got {alpha}.")
    return float(alpha)

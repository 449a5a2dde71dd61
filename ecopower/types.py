from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Optional

import numpy as np
import pandas as pd

if TYPE_CHECKING:
    from .cord import Cord


@dataclass
class PowerOutput:
    """
    Result of `powersim`.

    Attributes:
        power (float): share of alternative statistics above the critical value.
        critical_stat (float | np.ndarray): the critical value, or one critical
            value per alternative replicate when `long_power=True`.
        stats (np.ndarray): statistics simulated under the alternative, NaN
            for replicates that failed to refit.
        stats_null (np.ndarray): statistics simulated under the null.
        elapsed (float): wall time in seconds.
        n_failed (int): number of replicates (both phases) that failed.
    """

    power: float
    critical_stat: float | np.ndarray
    stats: np.ndarray = field(repr=False)
    stats_null: np.ndarray = field(repr=False)
    elapsed: float = 0.0
    n_failed: int = 0

    def __str__(self) -> str:
        return f"Power: {self.power}"


@dataclass
class EquivTestOutput:
    p: float
    stat: float
    stats_null: np.ndarray = field(repr=False)
    test: str = "LR"
    elapsed: float = 0.0
    n_failed: int = 0

    def __str__(self) -> str:
        return f"Equivalence test p-value: {self.p}"


@dataclass
class ReplicateResult:
    """
    One alternative-hypothesis replicate: the statistic of the refit, the
    refit itself and the null coefficients derived from it. `statistic` is
    NaN (and the rest is None) when the replicate could not be refit.
    """

    statistic: float
    refit: Optional["Cord"] = None
    coeffs0: Optional[pd.DataFrame] = None

    @property
    def converged(self) -> bool:
        return self.refit is not None and not np.isnan(self.statistic)

from typing import Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.base import BaseEstimator
from tqdm.auto import tqdm

from .cord import Cord
from .powersim import powersim
from .utils import check_positive_int


class PowerCurve(BaseEstimator):
    """
    Power over a grid of sample sizes.

    `fit` runs `powersim` once per sample size (each run with its own seed
    and worker pool) and stores the results in `landscape_`.
    """

    def __init__(
        self,
        coeffs: pd.DataFrame,
        term: str,
        nsim: int = 1000,
        ncrit: int = 999,
        test: str = "score",
        alpha: float = 0.05,
        ncores: Optional[int] = None,
        long_power: bool = False,
        n_samp: int = 10,
        nlv: int = 2,
        random_state: int = 42,
    ):
        self.coeffs = coeffs
        self.term = term
        self.nsim = nsim
        self.ncrit = ncrit
        self.test = test
        self.alpha = alpha
        self.ncores = ncores
        self.long_power = long_power
        self.n_samp = n_samp
        self.nlv = nlv
        self.random_state = random_state

    def fit(self, X: Cord, y: Sequence[int]):
        """
        Args:
            X (Cord): fitted copula model.
            y (Sequence[int]): sample sizes to evaluate.
        """
        sample_sizes = [check_positive_int(n, "N") for n in y]
        if not sample_sizes:
            raise ValueError("At least one sample size is required.")

        rows = []
        for i, N in enumerate(
            tqdm(sample_sizes, desc=f"Power curve for '{self.term}'")
        ):
            out = powersim(
                X,
                coeffs=self.coeffs,
                term=self.term,
                N=N,
                nsim=self.nsim,
                ncrit=self.ncrit,
                test=self.test,
                alpha=self.alpha,
                ncores=self.ncores,
                show_time=False,
                long_power=self.long_power,
                n_samp=self.n_samp,
                nlv=self.nlv,
                seed=self.random_state + i,
            )
            rows.append(
                {"N": N, "power": out.power, "n_failed": out.n_failed}
            )

        self.landscape_ = pd.DataFrame(rows)
        return self

    def predict(self, target_power: float = 0.8) -> float:
        """Smallest sample size in the grid reaching `target_power`."""
        if not hasattr(self, "landscape_"):
            raise RuntimeError("Call `fit` before `predict`.")
        reached = self.landscape_[self.landscape_["power"] >= target_power]
        if reached.empty:
            return np.nan
        return int(reached["N"].min())

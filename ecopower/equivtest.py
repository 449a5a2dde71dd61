import time
from typing import List, Optional

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from tqdm.auto import tqdm

from .cord import Cord
from .effects import check_coeffs
from .errors import InsufficientReplicatesError, RefitConvergenceError
from .extend import extend
from .logging import get_logger, log, log_elapsed
from .manyglm import ManyGLM
from .stats_tests import anova_stat, check_test, term_columns
from .types import EquivTestOutput
from .utils import check_positive_int, get_ncores, spawn_seeds

_logger = get_logger(__name__)


def equivalence_replicate(
    object: Cord,
    coeffs: pd.DataFrame,
    drop: List[str],
    test: str,
    seed: int,
) -> float:
    try:
        refit = extend(object, coeffs=coeffs, do_fit=True, seed=seed)
        return anova_stat(refit.obj, drop, test)
    except RefitConvergenceError:
        return np.nan


def _dropped_columns(
    model: ManyGLM, term: Optional[str], object0: Optional[ManyGLM]
) -> List[str]:
    if (term is None) == (object0 is None):
        raise ValueError("Specify exactly one of `term` or `object0`.")
    if term is not None:
        return term_columns(model, term)
    drop = [c for c in model.x.columns if c not in set(object0.x.columns)]
    missing = [c for c in object0.x.columns if c not in set(model.x.columns)]
    if not drop or missing:
        raise ValueError(
            "`object0` must be a submodel of `object`: its design columns "
            "have to be a strict subset of the full model's."
        )
    return drop


def equivtest(
    object: Cord,
    coeffs: pd.DataFrame,
    term: Optional[str] = None,
    object0: Optional[ManyGLM] = None,
    stats: Optional[float] = None,
    test: str = "LR",
    nsim: int = 999,
    ncores: Optional[int] = None,
    show_time: bool = True,
    seed: Optional[int] = None,
    progress: bool = False,
) -> EquivTestOutput:
    """
    Multivariate equivalence test.

    The null hypothesis is that the effect of `term` is at least as large
    as the effect in `coeffs` (the equivalence margin). Data are simulated
    `nsim` times under `coeffs`, refitted and tested, and the observed
    statistic is compared with that distribution: a small p-value means
    the observed effect is smaller than the margin.

    Args:
        object (Cord): fitted copula model.
        coeffs (pd.DataFrame): coefficients at the equivalence margin, see
            `effect_alt`.
        term (Optional[str]): term to test. Give either this or `object0`.
        object0 (Optional[ManyGLM]): fitted submodel without the effect.
        stats (Optional[float]): observed statistic, computed from `object`
            when omitted.
        test (str): "LR", "score" or "wald".
        nsim (int): number of simulated datasets.
        ncores (Optional[int]): worker pool size, defaults to cores - 1.
        show_time (bool): log the elapsed time.
        seed (Optional[int]): base random seed.
        progress (bool): show a tqdm progress bar.

    Returns:
        EquivTestOutput: p-value, observed and simulated statistics.
    """
    start = time.time()

    if not isinstance(object, Cord):
        raise TypeError(
            f"`equivtest` needs a Cord object, got {type(object).__name__}."
        )
    drop = _dropped_columns(object.obj, term, object0)
    coeffs = check_coeffs(coeffs, object)
    test = check_test(test)
    nsim = check_positive_int(nsim, "nsim")
    ncores = get_ncores(ncores)

    if stats is None:
        stats = anova_stat(object.obj, drop, test)

    with Parallel(n_jobs=ncores, backend="multiprocessing") as parallel:
        stats_null = np.array(
            parallel(
                delayed(equivalence_replicate)(object, coeffs, drop, test, s)
                for s in tqdm(
                    spawn_seeds(seed, nsim),
                    desc="Equivalence replicates",
                    disable=not progress,
                )
            ),
            dtype=float,
        )

    valid = stats_null[~np.isnan(stats_null)]
    if valid.size == 0:
        raise InsufficientReplicatesError(
            "No simulated replicate converged; cannot compute a p-value."
        )
    p = float((1 + np.sum(valid <= stats)) / (1 + valid.size))

    n_failed = int(nsim - valid.size)
    if n_failed:
        log(
            _logger.warning,
            f"{n_failed} of {nsim} replicates failed to refit and were ignored",
            "yellow",
        )

    elapsed = time.time() - start
    log_elapsed(_logger, elapsed, show_time)

    return EquivTestOutput(
        p=p,
        stat=float(stats),
        stats_null=stats_null,
        test=test,
        elapsed=elapsed,
        n_failed=n_failed,
    )

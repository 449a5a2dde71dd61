"""
Simulation-based power for multivariate abundance models.

Alternative replicates are simulated from the copula model with the effect
of interest, refitted, and tested for the term. Null replicates are centred
on the alternative refits (with the term zeroed out) and give the critical
value. Power is the share of alternative statistics above it.
"""

import time
from typing import List, Optional

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from tqdm.auto import tqdm

from .cord import Cord
from .effects import check_coeffs, effect_null
from .errors import InsufficientReplicatesError, RefitConvergenceError
from .extend import extend
from .logging import get_logger, log, log_elapsed
from .stats_tests import check_test, term_columns, term_stat
from .types import PowerOutput, ReplicateResult
from .utils import check_alpha, check_positive_int, get_ncores, spawn_seeds

_logger = get_logger(__name__)

# added to each statistic so that ties with the critical value count as hits
TOLERANCE = 1e-8


def alternative_replicate(
    object: Cord,
    coeffs: pd.DataFrame,
    term: str,
    N: Optional[int],
    newdata: Optional[pd.DataFrame],
    test: str,
    seed: int,
) -> ReplicateResult:
    """
    Simulates and refits one dataset under the alternative. A failed refit
    gives a NaN statistic instead of an error.
    """
    try:
        refit = extend(
            object, N=N, coeffs=coeffs, newdata=newdata, do_fit=True, seed=seed
        )
        statistic = term_stat(refit.obj, term, test)
    except RefitConvergenceError:
        return ReplicateResult(statistic=np.nan)
    return ReplicateResult(
        statistic=statistic, refit=refit, coeffs0=effect_null(refit, term)
    )


def null_replicate(
    object: Cord,
    coeffs0: pd.DataFrame,
    term: str,
    N: Optional[int],
    newdata: Optional[pd.DataFrame],
    test: str,
    seed: int,
) -> float:
    try:
        refit = extend(
            object, N=N, coeffs=coeffs0, newdata=newdata, do_fit=True, seed=seed
        )
        return term_stat(refit.obj, term, test)
    except RefitConvergenceError:
        return np.nan


def critical_value(stats_null: np.ndarray, alpha: float) -> float:
    """
    Upper `1 - alpha` quantile of the null statistics, ignoring missing ones.

    Raises:
        InsufficientReplicatesError: every null replicate failed.
    """
    stats_null = np.asarray(stats_null, dtype=float)
    valid = stats_null[~np.isnan(stats_null)]
    if valid.size == 0:
        raise InsufficientReplicatesError(
            "No null replicate converged; cannot estimate a critical value."
        )
    return float(np.quantile(valid, 1 - alpha))


def get_power(critical_stat: float | np.ndarray, stats: np.ndarray) -> float:
    """
    Share of statistics exceeding the critical value(s), ignoring missing
    entries.
    """
    stats = np.asarray(stats, dtype=float)
    critical_stat = np.broadcast_to(
        np.asarray(critical_stat, dtype=float), stats.shape
    )
    valid = ~np.isnan(stats) & ~np.isnan(critical_stat)
    if not valid.any():
        raise InsufficientReplicatesError(
            "No alternative replicate converged; cannot estimate power."
        )
    return float(np.mean(stats[valid] + TOLERANCE > critical_stat[valid]))


def _null_sources(
    alt: List[ReplicateResult], ncrit: int
) -> List[ReplicateResult]:
    converged = [r for r in alt if r.converged]
    if not converged:
        raise InsufficientReplicatesError(
            "No alternative replicate converged; cannot centre the null "
            "simulations."
        )
    return [converged[j % len(converged)] for j in range(ncrit)]


def powersim(
    object: Cord,
    coeffs: pd.DataFrame,
    term: str,
    N: Optional[int] = None,
    coeffs0: Optional[pd.DataFrame] = None,
    nsim: int = 1000,
    ncrit: int = 999,
    test: str = "score",
    alpha: float = 0.05,
    newdata: Optional[pd.DataFrame] = None,
    ncores: Optional[int] = None,
    show_time: bool = True,
    long_power: bool = False,
    n_samp: int = 10,
    nlv: int = 2,
    seed: Optional[int] = None,
    pool_first_alternative: bool = True,
    progress: bool = False,
) -> PowerOutput:
    """
    Estimates the power to detect the effect in `coeffs` with `N` sites.

    Standard mode simulates `nsim` datasets under `coeffs` and `ncrit`
    datasets under the null. Null replicate j is simulated from the refit
    of the j-th converged alternative replicate (cycling when `ncrit`
    exceeds them), with `term` zeroed out, which centres the null on the
    bootstrap fits rather than on a single point estimate. With
    `long_power` each alternative replicate gets its own `ncrit` null
    replicates and critical value, at the cost of `nsim * ncrit` refits.

    Args:
        object (Cord): fitted copula model.
        coeffs (pd.DataFrame): coefficients under the alternative, see
            `effect_alt`.
        term (str): predictor whose effect is tested.
        N (Optional[int]): number of sites, defaults to the original ones.
        coeffs0 (Optional[pd.DataFrame]): fixed null coefficients. When
            given, null replicates are simulated from `object` with these
            coefficients instead of from the alternative refits.
        nsim (int): number of alternative replicates.
        ncrit (int): number of null replicates.
        test (str): "score", "wald" or "LR".
        alpha (float): type I error rate.
        newdata (Optional[pd.DataFrame]): covariates of the new design.
        ncores (Optional[int]): worker pool size, defaults to cores - 1.
        show_time (bool): log the elapsed time.
        long_power (bool): one critical value per alternative replicate.
        n_samp (int): residual sets for the copula refits.
        nlv (int): latent variables of the copula refits.
        seed (Optional[int]): base random seed.
        pool_first_alternative (bool): add the (first) alternative statistic
            to the null sample before taking the quantile.
        progress (bool): show tqdm progress bars.

    Returns:
        PowerOutput: power estimate and the simulated statistics.
    """
    start = time.time()

    if not isinstance(object, Cord):
        raise TypeError(
            f"`powersim` needs a Cord object, got {type(object).__name__}."
        )
    term_columns(object.obj, term)
    coeffs = check_coeffs(coeffs, object)
    if coeffs0 is not None:
        coeffs0 = check_coeffs(coeffs0, object)
    nsim = check_positive_int(nsim, "nsim")
    ncrit = check_positive_int(ncrit, "ncrit")
    alpha = check_alpha(alpha)
    test = check_test(test)
    if N is not None:
        N = check_positive_int(N, "N")
    ncores = get_ncores(ncores)
    nlv = check_positive_int(nlv, "nlv")
    if nlv >= len(object.obj.responses):
        raise ValueError(
            f"`nlv` ({nlv}) must be smaller than the number of responses "
            f"({len(object.obj.responses)})."
        )
    # refits use the requested copula settings
    object = Cord(
        obj=object.obj,
        loadings=object.loadings,
        sigma=object.sigma,
        nlv=nlv,
        n_samp=check_positive_int(n_samp, "n_samp"),
    )

    n_null = nsim * ncrit if long_power else ncrit
    seeds = spawn_seeds(seed, nsim + n_null)
    alt_seeds, null_seeds = seeds[:nsim], seeds[nsim:]

    log(
        _logger.info,
        f"Estimating power for '{term}' with {nsim} alternative and "
        f"{ncrit} null replicates on {ncores} cores"
        + (" (long power)" if long_power else ""),
        "blue",
    )

    with Parallel(n_jobs=ncores, backend="multiprocessing") as parallel:
        alt = parallel(
            delayed(alternative_replicate)(
                object, coeffs, term, N, newdata, test, s
            )
            for s in tqdm(
                alt_seeds, desc="Alternative replicates", disable=not progress
            )
        )
        stats = np.array([r.statistic for r in alt], dtype=float)

        if long_power:
            critical_stat = np.full(nsim, np.nan)
            null_blocks = []
            for i, replicate in enumerate(
                tqdm(alt, desc="Null distributions", disable=not progress)
            ):
                block_seeds = null_seeds[i * ncrit : (i + 1) * ncrit]
                if not replicate.converged:
                    null_blocks.append(np.full(ncrit, np.nan))
                    continue
                source, source_coeffs0 = replicate.refit, replicate.coeffs0
                if coeffs0 is not None:
                    source, source_coeffs0 = object, coeffs0
                block = np.array(
                    parallel(
                        delayed(null_replicate)(
                            source, source_coeffs0, term, N, newdata, test, s
                        )
                        for s in block_seeds
                    ),
                    dtype=float,
                )
                null_blocks.append(block)
                if np.isnan(block).all():
                    continue
                pooled = (
                    np.append(replicate.statistic, block)
                    if pool_first_alternative
                    else block
                )
                critical_stat[i] = critical_value(pooled, alpha)
            stats_null = np.concatenate(null_blocks)
            if np.isnan(critical_stat).all():
                raise InsufficientReplicatesError(
                    "No null replicate converged; cannot estimate a critical "
                    "value."
                )
        else:
            if coeffs0 is not None:
                sources = [(object, coeffs0)] * ncrit
            else:
                sources = [
                    (r.refit, r.coeffs0) for r in _null_sources(alt, ncrit)
                ]
            stats_null = np.array(
                parallel(
                    delayed(null_replicate)(
                        source, source_coeffs0, term, N, newdata, test, s
                    )
                    for (source, source_coeffs0), s in tqdm(
                        zip(sources, null_seeds),
                        total=ncrit,
                        desc="Null replicates",
                        disable=not progress,
                    )
                ),
                dtype=float,
            )
            if np.isnan(stats_null).all():
                raise InsufficientReplicatesError(
                    "No null replicate converged; cannot estimate a critical "
                    "value."
                )
            pooled = (
                np.append(stats[0], stats_null)
                if pool_first_alternative
                else stats_null
            )
            critical_stat = critical_value(pooled, alpha)

    power = get_power(critical_stat, stats)

    n_failed = int(np.isnan(stats).sum() + np.isnan(stats_null).sum())
    if n_failed:
        log(
            _logger.warning,
            f"{n_failed} of {stats.size + stats_null.size} replicates failed "
            "to refit and were ignored",
            "yellow",
        )

    elapsed = time.time() - start
    log_elapsed(_logger, elapsed, show_time)

    return PowerOutput(
        power=power,
        critical_stat=critical_stat,
        stats=stats,
        stats_null=stats_null,
        elapsed=elapsed,
        n_failed=n_failed,
    )

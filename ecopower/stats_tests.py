from dataclasses import dataclass
from typing import Sequence

import catalogue
import numpy as np
import statsmodels.api as sm

from .errors import InvalidTermError, RefitConvergenceError
from .manyglm import ManyGLM, fit_response

stats_tests = catalogue.create("ecopower", "stats_tests")


@dataclass
class TermTestParameters:
    """
    Everything a statistic needs for one response: the full fit and the
    columns kept by the term-removed submodel.
    """

    y: np.ndarray
    x: np.ndarray
    keep: np.ndarray
    params: np.ndarray
    cov_params: np.ndarray
    llf: float
    glm_family: sm.families.Family


@stats_tests.register("score")
def score_test(test_params: TermTestParameters) -> float:
    """
    Rao score statistic evaluated at the submodel fit.

    At the submodel MLE the score of the kept columns vanishes, so the
    quadratic form over the full score vector equals the efficient score
    statistic for the dropped columns.
    """
    x = test_params.x
    reduced = fit_response(
        test_params.y, x[:, test_params.keep], test_params.glm_family
    )
    mu = reduced.mu
    family = test_params.glm_family
    dmu_deta = 1.0 / family.link.deriv(mu)
    variance = family.variance(mu)
    score = x.T @ ((test_params.y - mu) * dmu_deta / variance)
    information = x.T @ (x * (dmu_deta**2 / variance)[:, None])
    return float(score @ np.linalg.solve(information, score))


@stats_tests.register("wald")
def wald_test(test_params: TermTestParameters) -> float:
    dropped = ~test_params.keep
    beta = test_params.params[dropped]
    cov = test_params.cov_params[np.ix_(dropped, dropped)]
    return float(beta @ np.linalg.solve(cov, beta))


@stats_tests.register("LR")
def likelihood_ratio_test(test_params: TermTestParameters) -> float:
    reduced = fit_response(
        test_params.y,
        test_params.x[:, test_params.keep],
        test_params.glm_family,
    )
    return max(0.0, 2.0 * (test_params.llf - reduced.llf))


def check_test(test: str) -> str:
    if test not in stats_tests.get_all():
        raise ValueError(
            f"Unknown test '{test}', expected one of "
            f"{sorted(stats_tests.get_all())}."
        )
    return test


def term_columns(model: ManyGLM, term: str) -> list:
    if term not in model.term_columns:
        raise InvalidTermError(
            f"'{term}' is not a term of the model; available terms are "
            f"{model.terms}."
        )
    return model.term_columns[term]


def anova_stat(
    model: ManyGLM, drop: Sequence[str], test: str = "score"
) -> float:
    """
    Multivariate statistic comparing `model` with the submodel that omits
    the design columns in `drop`: the sum of the per-response statistics.

    Raises:
        RefitConvergenceError: a submodel fit failed or an information
            matrix was singular.
    """
    statistic_fn = stats_tests.get(check_test(test))
    keep = ~model.x.columns.isin(list(drop))
    if keep.all():
        raise ValueError("No design column to drop.")
    x = model.x.to_numpy(dtype=float)
    marginal = model.marginal

    total = 0.0
    for response in model.responses:
        test_params = TermTestParameters(
            y=model.y[response].to_numpy(dtype=float),
            x=x,
            keep=keep,
            params=model.coefficients[response].to_numpy(dtype=float),
            cov_params=model.cov_params[response],
            llf=float(model.llf[response]),
            glm_family=marginal.glm_family(model.dispersion[response]),
        )
        try:
            total += statistic_fn(test_params)
        except np.linalg.LinAlgError as exc:
            raise RefitConvergenceError(
                f"Response '{response}': {exc}"
            ) from exc
    return total


def term_stat(model: ManyGLM, term: str, test: str = "score") -> float:
    """Statistic for `term` against the model without it."""
    return anova_stat(model, term_columns(model, term), test)

import warnings

import catalogue
import numpy as np
import statsmodels.api as sm
from scipy import stats
from statsmodels.tools.sm_exceptions import (
    ConvergenceWarning as SmConvergenceWarning,
)
from statsmodels.tools.sm_exceptions import HessianInversionWarning

from .errors import RefitConvergenceError

families = catalogue.create("ecopower", "families")

# keeps quantile functions finite when a copula draw lands on 0 or 1
_EPS = 1e-12


class MarginalFamily:
    """
    Marginal distribution of a single response in a `ManyGLM`.

    A family knows how to build the statsmodels GLM family for a given
    dispersion, how to estimate that dispersion, and how to evaluate the
    CDF and quantile function used by the copula.
    """

    name = ""

    def glm_family(self, dispersion: float = 0.0) -> sm.families.Family:
        raise NotImplementedError

    @property
    def link(self):
        return self.glm_family().link

    def estimate_dispersion(self, y: np.ndarray, x: np.ndarray) -> float:
        return 0.0

    def check_response(self, y: np.ndarray, response: str) -> None:
        if np.any(y < 0) or not np.allclose(y, np.round(y)):
            raise ValueError(
                f"Response '{response}' must hold non-negative counts."
            )
        if not np.any(y > 0):
            raise RefitConvergenceError(
                f"Response '{response}' has no non-zero observations."
            )

    def cdf(self, y: np.ndarray, mu: np.ndarray, dispersion: float):
        raise NotImplementedError

    def ppf(self, u: np.ndarray, mu: np.ndarray, dispersion: float):
        raise NotImplementedError


@families.register("negative.binomial")
class NegativeBinomialFamily(MarginalFamily):
    """
    NB2 counts, Var(y) = mu + alpha * mu^2, log link. The dispersion alpha is
    estimated by maximum likelihood with `sm.NegativeBinomial` and then held
    fixed in the GLM fit.
    """

    name = "negative.binomial"

    def glm_family(self, dispersion: float = 1.0) -> sm.families.Family:
        return sm.families.NegativeBinomial(alpha=max(dispersion, 1e-8))

    def estimate_dispersion(self, y: np.ndarray, x: np.ndarray) -> float:
        with warnings.catch_warnings():
            warnings.filterwarnings("ignore", category=SmConvergenceWarning)
            warnings.filterwarnings("ignore", category=HessianInversionWarning)
            warnings.filterwarnings("ignore", category=RuntimeWarning)
            try:
                res = sm.NegativeBinomial(y, x).fit(disp=0, maxiter=300)
            except (np.linalg.LinAlgError, ValueError) as exc:
                raise RefitConvergenceError(str(exc)) from exc
        alpha = float(np.asarray(res.params)[-1])
        if not res.mle_retvals.get("converged", False) or not np.isfinite(
            alpha
        ):
            raise RefitConvergenceError(
                "Negative binomial dispersion did not converge."
            )
        return max(alpha, 1e-8)

    @staticmethod
    def _scipy_params(mu, dispersion):
        size = 1.0 / max(dispersion, 1e-8)
        return size, size / (size + np.asarray(mu, dtype=float))

    def cdf(self, y, mu, dispersion):
        n, p = self._scipy_params(mu, dispersion)
        return stats.nbinom.cdf(y, n, p)

    def ppf(self, u, mu, dispersion):
        n, p = self._scipy_params(mu, dispersion)
        return stats.nbinom.ppf(np.clip(u, _EPS, 1 - _EPS), n, p)


@families.register("poisson")
class PoissonFamily(MarginalFamily):
    name = "poisson"

    def glm_family(self, dispersion: float = 0.0) -> sm.families.Family:
        return sm.families.Poisson()

    def cdf(self, y, mu, dispersion):
        return stats.poisson.cdf(y, mu)

    def ppf(self, u, mu, dispersion):
        return stats.poisson.ppf(np.clip(u, _EPS, 1 - _EPS), mu)


@families.register("binomial")
class BinomialFamily(MarginalFamily):
    """Presence/absence data, logit link."""

    name = "binomial"

    def glm_family(self, dispersion: float = 0.0) -> sm.families.Family:
        return sm.families.Binomial()

    def check_response(self, y: np.ndarray, response: str) -> None:
        if not np.all(np.isin(y, (0, 1))):
            raise ValueError(f"Response '{response}' must be 0/1.")
        if y.min() == y.max():
            raise RefitConvergenceError(
                f"Response '{response}' is constant."
            )

    def cdf(self, y, mu, dispersion):
        return stats.binom.cdf(y, 1, mu)

    def ppf(self, u, mu, dispersion):
        return stats.binom.ppf(np.clip(u, _EPS, 1 - _EPS), 1, mu)


def get_family(name: str) -> MarginalFamily:
    try:
        return families.get(name)()
    except catalogue.RegistryError as exc:
        raise ValueError(
            f"Unknown family '{name}', expected one of "
            f"{sorted(families.get_all())}."
        ) from exc


def dunn_smyth_residuals(
    family: MarginalFamily,
    y: np.ndarray,
    mu: np.ndarray,
    dispersion: float,
    rng: np.random.Generator,
) -> np.ndarray:
    """
    Randomised quantile residuals of discrete observations: a uniform draw
    between F(y - 1) and F(y), mapped through the standard normal quantile.
    """
    upper = family.cdf(y, mu, dispersion)
    lower = family.cdf(y - 1, mu, dispersion)
    u = lower + rng.uniform(size=np.shape(y)) * (upper - lower)
    return stats.norm.ppf(np.clip(u, _EPS, 1 - _EPS))

"""
Gaussian copula with a latent factor covariance, fitted to the Dunn-Smyth
residuals of a `ManyGLM` (cf. ecoCopula's `cord`).
"""

from dataclasses import dataclass
from typing import Optional

import numpy as np
import pandas as pd
from scipy import stats
from sklearn.decomposition import FactorAnalysis

from .families import dunn_smyth_residuals
from .logging import get_logger
from .manyglm import ManyGLM
from .utils import check_positive_int

_logger = get_logger(__name__)


@dataclass(frozen=True, eq=False)
class Cord:
    """
    A copula model over the marginal fits in `obj`.

    Attributes:
        obj (ManyGLM): the marginal model.
        loadings (pd.DataFrame): responses x latent variables.
        sigma (pd.DataFrame): correlation matrix of the copula.
        nlv (int): number of latent variables.
        n_samp (int): number of residual sets averaged in the fit.
    """

    obj: ManyGLM
    loadings: pd.DataFrame
    sigma: pd.DataFrame
    nlv: int
    n_samp: int

    def simulate(
        self,
        coeffs: pd.DataFrame,
        x: pd.DataFrame,
        rng: np.random.Generator,
    ) -> pd.DataFrame:
        """
        Draws one response matrix for design `x` with mean structure
        `coeffs`. Responses are correlated through `sigma`; marginals keep
        the fitted family and dispersion.
        """
        marginal = self.obj.marginal
        mu = self.obj.fitted(coeffs, x)
        z = rng.multivariate_normal(
            np.zeros(self.sigma.shape[0]),
            self.sigma.to_numpy(),
            size=x.shape[0],
        )
        u = stats.norm.cdf(z)
        y = np.empty_like(mu)
        for j, response in enumerate(self.obj.responses):
            y[:, j] = marginal.ppf(
                u[:, j], mu[:, j], self.obj.dispersion[response]
            )
        return pd.DataFrame(y, columns=self.obj.responses)


def _cov_to_corr(cov: np.ndarray) -> np.ndarray:
    sd = np.sqrt(np.diag(cov))
    corr = cov / np.outer(sd, sd)
    np.fill_diagonal(corr, 1.0)
    return corr


def cord(
    obj: ManyGLM,
    nlv: int = 2,
    n_samp: int = 10,
    seed: Optional[int] = None,
) -> Cord:
    """
    Fits the latent factor copula.

    Each of `n_samp` sets of randomised quantile residuals is fitted with a
    factor analysis of `nlv` factors; the implied covariances are averaged
    and rescaled to a correlation matrix.

    Args:
        obj (ManyGLM): fitted marginal model.
        nlv (int): number of latent variables, fewer than the responses.
        n_samp (int): number of residual sets.
        seed (Optional[int]): seed for the residual randomisation.

    Returns:
        Cord: the copula model.
    """
    nlv = check_positive_int(nlv, "nlv")
    n_samp = check_positive_int(n_samp, "n_samp")
    n_responses = len(obj.responses)
    if nlv >= n_responses:
        raise ValueError(
            f"`nlv` ({nlv}) must be smaller than the number of responses "
            f"({n_responses})."
        )

    rng = np.random.default_rng(seed)
    marginal = obj.marginal
    mu = obj.fitted()
    y = obj.y.to_numpy(dtype=float)

    cov = np.zeros((n_responses, n_responses))
    for _ in range(n_samp):
        residuals = np.column_stack(
            [
                dunn_smyth_residuals(
                    marginal,
                    y[:, j],
                    mu[:, j],
                    obj.dispersion[response],
                    rng,
                )
                for j, response in enumerate(obj.responses)
            ]
        )
        fa = FactorAnalysis(
            n_components=nlv, random_state=int(rng.integers(2**31 - 1))
        ).fit(residuals)
        cov += fa.components_.T @ fa.components_ + np.diag(
            fa.noise_variance_
        )
    sigma = _cov_to_corr(cov / n_samp)

    # loadings of the averaged correlation, largest factor first
    eigvals, eigvecs = np.linalg.eigh(sigma)
    order = np.argsort(eigvals)[::-1][:nlv]
    loadings = eigvecs[:, order] * np.sqrt(np.clip(eigvals[order], 0, None))

    _logger.debug(
        f"Fitted copula with {nlv} latent variables on {n_samp} residual sets"
    )

    return Cord(
        obj=obj,
        loadings=pd.DataFrame(
            loadings,
            index=obj.responses,
            columns=[f"LV{k + 1}" for k in range(nlv)],
        ),
        sigma=pd.DataFrame(sigma, index=obj.responses, columns=obj.responses),
        nlv=nlv,
        n_samp=n_samp,
    )

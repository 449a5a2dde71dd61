"""
Per-response GLM fits over a multivariate abundance matrix.

`manyglm` fits one GLM per response column against a shared patsy design,
in the spirit of mvabund's function of the same name. The result is a plain
container of numpy/pandas objects so that it pickles into worker processes
(patsy design objects do not).
"""

import warnings
from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Optional

import numpy as np
import pandas as pd
import patsy
import statsmodels.api as sm
from statsmodels.tools.sm_exceptions import (
    ConvergenceWarning as SmConvergenceWarning,
)
from statsmodels.tools.sm_exceptions import (
    DomainWarning,
    PerfectSeparationWarning,
)

from .errors import DimensionMismatchError, RefitConvergenceError
from .families import MarginalFamily, get_family


@dataclass(frozen=True)
class ResponseFit:
    params: np.ndarray
    cov_params: np.ndarray
    llf: float
    mu: np.ndarray


@dataclass(frozen=True, eq=False)
class ManyGLM:
    """
    A fitted multivariate GLM.

    Attributes:
        y (pd.DataFrame): responses, one column per taxon.
        data (pd.DataFrame): covariates the design was built from.
        formula (str): right-hand side formula, e.g. ``"~ bare_sand"``.
        family (str): name of the marginal family in the registry.
        x (pd.DataFrame): design matrix.
        coefficients (pd.DataFrame): design columns x responses.
        dispersion (pd.Series): per-response dispersion (0 when the family
            has none).
        cov_params (Dict[str, np.ndarray]): per-response coefficient
            covariance.
        llf (pd.Series): per-response log-likelihood.
        term_columns (Dict[str, List[str]]): design columns of every term.
        categorical_terms (FrozenSet[str]): terms built from factors.
    """

    y: pd.DataFrame
    data: pd.DataFrame
    formula: str
    family: str
    x: pd.DataFrame
    coefficients: pd.DataFrame
    dispersion: pd.Series
    cov_params: Dict[str, np.ndarray]
    llf: pd.Series
    term_columns: Dict[str, List[str]]
    categorical_terms: FrozenSet[str]

    @property
    def responses(self) -> List[str]:
        return list(self.y.columns)

    @property
    def terms(self) -> List[str]:
        return list(self.term_columns)

    @property
    def n_obs(self) -> int:
        return self.y.shape[0]

    @property
    def marginal(self) -> MarginalFamily:
        return get_family(self.family)

    def fitted(
        self,
        coeffs: Optional[pd.DataFrame] = None,
        x: Optional[pd.DataFrame] = None,
    ) -> np.ndarray:
        """Marginal means for `coeffs` (default: the fit) on design `x`."""
        coeffs = self.coefficients if coeffs is None else coeffs
        x = self.x if x is None else x
        eta = x.to_numpy(dtype=float) @ coeffs.to_numpy(dtype=float)
        return self.marginal.link.inverse(eta)

    def design(self, newdata: pd.DataFrame) -> pd.DataFrame:
        """Builds the design of `newdata` with this model's coding."""
        return build_design(self.formula, self.data, newdata)


def _normalise_formula(formula: str) -> str:
    # only the right-hand side is used; responses come from `y`
    if "~" in formula:
        formula = formula.split("~", 1)[1]
    return "~ " + formula.strip()


def build_design(
    formula: str,
    data: pd.DataFrame,
    newdata: Optional[pd.DataFrame] = None,
) -> pd.DataFrame:
    """
    Design matrix of `newdata` (default: `data`) coded as in `data`, so that
    factor levels and column names line up with the original fit.
    """
    x = patsy.dmatrix(
        formula, data, return_type="dataframe", NA_action="raise"
    )
    if newdata is None:
        return x.reset_index(drop=True)
    (x_new,) = patsy.build_design_matrices(
        [x.design_info], newdata, return_type="dataframe", NA_action="raise"
    )
    return x_new.reset_index(drop=True)


def fit_response(
    y: np.ndarray,
    x: np.ndarray,
    glm_family: sm.families.Family,
) -> ResponseFit:
    """
    Fits a single GLM by IRLS.

    Raises:
        RefitConvergenceError: IRLS did not converge or produced
            non-finite estimates.
    """
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=SmConvergenceWarning)
        warnings.filterwarnings("ignore", category=PerfectSeparationWarning)
        warnings.filterwarnings("ignore", category=DomainWarning)
        warnings.filterwarnings("ignore", category=RuntimeWarning)
        try:
            res = sm.GLM(y, x, family=glm_family).fit(maxiter=100)
        except (np.linalg.LinAlgError, ValueError) as exc:
            raise RefitConvergenceError(str(exc)) from exc

    params = np.asarray(res.params, dtype=float)
    cov = np.asarray(res.cov_params(), dtype=float)
    if not getattr(res, "converged", True) or not (
        np.all(np.isfinite(params)) and np.all(np.isfinite(cov))
    ):
        raise RefitConvergenceError("GLM fit did not converge.")

    return ResponseFit(
        params=params,
        cov_params=cov,
        llf=float(res.llf),
        mu=np.asarray(res.fittedvalues, dtype=float),
    )


def _term_structure(x: pd.DataFrame):
    info = x.design_info
    term_columns = {}
    categorical = set()
    for term, slc in info.term_name_slices.items():
        if term == "Intercept":
            continue
        term_columns[term] = list(x.columns[slc])
    for term in info.terms:
        name = term.name()
        if name not in term_columns:
            continue
        if any(
            info.factor_infos[factor].type == "categorical"
            for factor in term.factors
        ):
            categorical.add(name)
    return term_columns, frozenset(categorical)


def manyglm(
    y: pd.DataFrame,
    formula: str,
    data: pd.DataFrame,
    family: str = "negative.binomial",
) -> ManyGLM:
    """
    Fits one GLM per column of `y` against the design of `formula`.

    Args:
        y (pd.DataFrame): abundance matrix, rows are sites, columns taxa.
        formula (str): right-hand side formula, e.g. ``"~ Treatment"``.
        data (pd.DataFrame): covariates, one row per site.
        family (str): "negative.binomial", "poisson" or "binomial".

    Returns:
        ManyGLM: the fitted model.

    Raises:
        DimensionMismatchError: `y` and `data` have different row counts.
        RefitConvergenceError: a marginal fit failed.
    """
    if not isinstance(y, pd.DataFrame):
        y = pd.DataFrame(y)
        y.columns = [f"y{i + 1}" for i in range(y.shape[1])]
    y = y.reset_index(drop=True)
    y.columns = [str(c) for c in y.columns]
    data = pd.DataFrame(data).reset_index(drop=True)
    if y.shape[0] != data.shape[0]:
        raise DimensionMismatchError(
            f"`y` has {y.shape[0]} rows but `data` has {data.shape[0]}."
        )

    formula = _normalise_formula(formula)
    x_info = patsy.dmatrix(
        formula, data, return_type="dataframe", NA_action="raise"
    )
    term_columns, categorical = _term_structure(x_info)
    x = x_info.reset_index(drop=True)
    x_arr = x.to_numpy(dtype=float)

    marginal = get_family(family)
    coefficients = {}
    dispersion = {}
    cov_params = {}
    llf = {}
    for response in y.columns:
        y_j = y[response].to_numpy(dtype=float)
        marginal.check_response(y_j, response)
        try:
            alpha = marginal.estimate_dispersion(y_j, x_arr)
            fit = fit_response(y_j, x_arr, marginal.glm_family(alpha))
        except RefitConvergenceError as exc:
            raise RefitConvergenceError(
                f"Response '{response}': {exc}"
            ) from exc
        coefficients[response] = fit.params
        dispersion[response] = alpha
        cov_params[response] = fit.cov_params
        llf[response] = fit.llf

    return ManyGLM(
        y=y,
        data=data,
        formula=formula,
        family=family,
        x=pd.DataFrame(x_arr, columns=list(x.columns)),
        coefficients=pd.DataFrame(
            coefficients, index=list(x.columns), columns=list(y.columns)
        ),
        dispersion=pd.Series(dispersion, dtype=float),
        cov_params=cov_params,
        llf=pd.Series(llf, dtype=float),
        term_columns=term_columns,
        categorical_terms=categorical,
    )

from typing import List, Optional

import numpy as np
import pandas as pd
from pandas.api.types import is_numeric_dtype

from .cord import Cord, cord
from .effects import check_coeffs
from .errors import DimensionMismatchError
from .manyglm import manyglm
from .utils import check_positive_int


def _resample_rows(
    data: pd.DataFrame, N: int, rng: np.random.Generator
) -> pd.DataFrame:
    """
    Draws `N` rows of `data` with replacement. Factor columns keep every
    original level, so that the design keeps its columns even when a level
    is not drawn.
    """
    idx = rng.integers(0, data.shape[0], size=N)
    resampled = data.iloc[idx].reset_index(drop=True)
    for column in data.columns:
        if is_numeric_dtype(data[column]):
            continue
        if isinstance(data[column].dtype, pd.CategoricalDtype):
            categories = data[column].cat.categories
        else:
            categories = sorted(data[column].unique())
        resampled[column] = pd.Categorical(
            resampled[column], categories=categories
        )
    return resampled


def _design_frame(
    object: Cord,
    N: Optional[int],
    newdata: Optional[pd.DataFrame],
    rng: np.random.Generator,
) -> pd.DataFrame:
    data = object.obj.data
    if newdata is not None:
        newdata = pd.DataFrame(newdata).reset_index(drop=True)
        if N is not None and N != newdata.shape[0]:
            raise DimensionMismatchError(
                f"`N` ({N}) does not match the {newdata.shape[0]} rows of "
                "`newdata`."
            )
        return newdata
    if N is None or N == data.shape[0]:
        return data
    return _resample_rows(data, N, rng)


def _extend_once(
    object: Cord,
    coeffs: pd.DataFrame,
    design: pd.DataFrame,
    do_fit: bool,
    rng: np.random.Generator,
) -> pd.DataFrame | Cord:
    x = object.obj.design(design)
    y = object.simulate(coeffs, x, rng)
    if not do_fit:
        return pd.concat([design.reset_index(drop=True), y], axis=1)
    refit = manyglm(y, object.obj.formula, design, family=object.obj.family)
    return cord(
        refit,
        nlv=object.nlv,
        n_samp=object.n_samp,
        seed=int(rng.integers(2**31 - 1)),
    )


def extend(
    object: Cord,
    N: Optional[int] = None,
    coeffs: Optional[pd.DataFrame] = None,
    newdata: Optional[pd.DataFrame] = None,
    n_replicate: Optional[int] = None,
    do_fit: bool = False,
    seed: Optional[int] = None,
) -> pd.DataFrame | Cord | List[pd.DataFrame | Cord]:
    """
    Simulates new abundance data from a copula model, optionally refitting.

    The design is `newdata` when given, the original covariates when `N`
    matches the original sample size, and `N` rows resampled with
    replacement from the original covariates otherwise.

    Args:
        object (Cord): fitted copula model, left untouched.
        N (Optional[int]): number of sites to simulate.
        coeffs (Optional[pd.DataFrame]): mean-structure coefficients,
            defaults to the fitted ones.
        newdata (Optional[pd.DataFrame]): covariates of the new design.
        n_replicate (Optional[int]): number of independent datasets; when
            set a list is returned.
        do_fit (bool): refit `manyglm` and `cord` to the simulated data.
        seed (Optional[int]): random seed.

    Returns:
        A DataFrame of covariates and simulated responses, or the refit
        `Cord` when `do_fit` is true (a list of them with `n_replicate`).

    Raises:
        DimensionMismatchError: `N` conflicts with `newdata`, or `coeffs`
            does not match the model.
        RefitConvergenceError: the refit failed.
    """
    if not isinstance(object, Cord):
        raise TypeError(
            f"`extend` needs a Cord object, got {type(object).__name__}."
        )
    if N is not None:
        N = check_positive_int(N, "N")
    coeffs = check_coeffs(
        object.obj.coefficients if coeffs is None else coeffs, object
    )
    rng = np.random.default_rng(seed)

    if n_replicate is None:
        design = _design_frame(object, N, newdata, rng)
        return _extend_once(object, coeffs, design, do_fit, rng)

    n_replicate = check_positive_int(n_replicate, "n_replicate")
    replicates = []
    for _ in range(n_replicate):
        design = _design_frame(object, N, newdata, rng)
        replicates.append(_extend_once(object, coeffs, design, do_fit, rng))
    return replicates

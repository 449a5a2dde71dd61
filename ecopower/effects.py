from typing import Optional, Sequence

import numpy as np
import pandas as pd

from .cord import Cord
from .errors import DimensionMismatchError, InvalidResponseError
from .manyglm import ManyGLM
from .stats_tests import term_columns


def _as_manyglm(object: ManyGLM | Cord) -> ManyGLM:
    if isinstance(object, Cord):
        return object.obj
    if isinstance(object, ManyGLM):
        return object
    raise TypeError(
        f"Expected a ManyGLM or Cord object, got {type(object).__name__}."
    )


def _check_responses(
    model: ManyGLM, increasers: Sequence[str], decreasers: Sequence[str]
) -> None:
    responses = set(model.responses)
    unknown = [r for r in [*increasers, *decreasers] if r not in responses]
    if unknown:
        raise InvalidResponseError(
            f"{unknown} are not responses of the model; valid responses are "
            f"{model.responses}."
        )
    overlap = sorted(set(increasers) & set(decreasers))
    if overlap:
        raise InvalidResponseError(
            f"{overlap} are listed as both increasers and decreasers."
        )


def effect_alt(
    object: ManyGLM | Cord,
    effect_size: float,
    increasers: Sequence[str],
    decreasers: Sequence[str],
    term: str,
    K: Optional[Sequence[float]] = None,
) -> pd.DataFrame:
    """
    Builds a coefficient matrix with a multiplicative effect of `term`.

    Increasers get a coefficient of ``log(effect_size)`` for `term`,
    decreasers ``-log(effect_size)``; every other response keeps its fitted
    coefficient. For a factor with L levels each of the L-1 contrasts gets
    the same effect unless `K` is given, in which case contrast k gets
    ``log(effect_size) * K[k] / max(K)``.

    Args:
        object (ManyGLM | Cord): fitted model.
        effect_size (float): multiplicative effect, > 0.
        increasers (Sequence[str]): responses increasing with `term`.
        decreasers (Sequence[str]): responses decreasing with `term`.
        term (str): the predictor to manipulate.
        K (Optional[Sequence[float]]): relative effect of each contrast of a
            factor term.

    Returns:
        pd.DataFrame: coefficients shaped like the fitted ones.

    Raises:
        InvalidTermError: `term` is not in the model.
        InvalidResponseError: unknown or overlapping responses.
    """
    if not effect_size > 0:
        raise ValueError(f"`effect_size` must be > 0, got {effect_size}.")
    model = _as_manyglm(object)
    columns = term_columns(model, term)
    increasers = list(increasers or [])
    decreasers = list(decreasers or [])
    _check_responses(model, increasers, decreasers)

    magnitude = np.full(len(columns), np.log(effect_size))
    if K is not None:
        if term not in model.categorical_terms:
            raise ValueError(f"`K` only applies to factor terms, not '{term}'.")
        K = np.asarray(K, dtype=float)
        if K.shape != (len(columns),) or np.any(K <= 0):
            raise ValueError(
                f"`K` must hold {len(columns)} positive values, one per "
                f"non-reference level of '{term}'."
            )
        magnitude = magnitude * K / K.max()

    coeffs = model.coefficients.copy()
    for response in increasers:
        coeffs.loc[columns, response] = magnitude
    for response in decreasers:
        coeffs.loc[columns, response] = -magnitude
    return coeffs


def effect_null(object: ManyGLM | Cord, term: str) -> pd.DataFrame:
    """Fitted coefficients with every row of `term` set to zero."""
    model = _as_manyglm(object)
    columns = term_columns(model, term)
    coeffs = model.coefficients.copy()
    coeffs.loc[columns, :] = 0.0
    return coeffs


def check_coeffs(
    coeffs: pd.DataFrame | np.ndarray, object: ManyGLM | Cord
) -> pd.DataFrame:
    """
    Validates a coefficient matrix against the fitted model.

    A bare array of the right shape is labelled with the model's design
    columns and responses.

    Raises:
        DimensionMismatchError: shape or labels differ from the fit.
    """
    model = _as_manyglm(object)
    expected = model.coefficients
    if not isinstance(coeffs, pd.DataFrame):
        coeffs = np.asarray(coeffs, dtype=float)
        if coeffs.shape != expected.shape:
            raise DimensionMismatchError(
                f"Coefficient matrix has shape {coeffs.shape}, the model "
                f"expects {expected.shape}."
            )
        coeffs = pd.DataFrame(
            coeffs, index=expected.index, columns=expected.columns
        )
    elif coeffs.shape != expected.shape:
        raise DimensionMismatchError(
            f"Coefficient matrix has shape {coeffs.shape}, the model expects "
            f"{expected.shape}."
        )
    if set(coeffs.index) != set(expected.index) or set(coeffs.columns) != set(
        expected.columns
    ):
        raise DimensionMismatchError(
            "Coefficient matrix labels do not match the model: expected rows "
            f"{list(expected.index)} and columns {list(expected.columns)}."
        )
    coeffs = coeffs.loc[expected.index, expected.columns].astype(float)
    if not np.all(np.isfinite(coeffs.to_numpy())):
        raise ValueError("Coefficient matrix contains non-finite values.")
    return coeffs

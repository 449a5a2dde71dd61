import numpy as np
import pandas as pd
import pytest
import statsmodels.api as sm

from ecopower import manyglm
from ecopower.errors import DimensionMismatchError, RefitConvergenceError


def test_coefficient_matrix_layout(fit_nb, abundance):
    y, _ = abundance
    assert list(fit_nb.coefficients.index) == ["Intercept", "bare_sand"]
    assert list(fit_nb.coefficients.columns) == list(y.columns)
    assert fit_nb.dispersion.gt(0).all()
    assert set(fit_nb.cov_params) == set(y.columns)


def test_term_structure(fit_factor):
    assert fit_factor.terms == ["treatment", "bare_sand"]
    assert fit_factor.term_columns["treatment"] == [
        "treatment[T.B]",
        "treatment[T.C]",
    ]
    assert fit_factor.categorical_terms == frozenset({"treatment"})


def test_poisson_fit_matches_statsmodels(fit_poisson, abundance):
    y, data = abundance
    x = sm.add_constant(data["bare_sand"].to_numpy())
    res = sm.GLM(
        y["Alopacce"].to_numpy(), x, family=sm.families.Poisson()
    ).fit()
    np.testing.assert_allclose(
        fit_poisson.coefficients["Alopacce"].to_numpy(), res.params, rtol=1e-6
    )
    np.testing.assert_allclose(
        fit_poisson.llf["Alopacce"], res.llf, rtol=1e-8
    )


def test_fitted_means(fit_poisson):
    mu = fit_poisson.fitted()
    assert mu.shape == fit_poisson.y.shape
    assert np.all(mu > 0)


def test_formula_left_hand_side_is_ignored(abundance, fit_poisson):
    y, data = abundance
    fit = manyglm(y, "spiddat ~ bare_sand", data, family="poisson")
    pd.testing.assert_frame_equal(fit.coefficients, fit_poisson.coefficients)


def test_row_mismatch(abundance):
    y, data = abundance
    with pytest.raises(DimensionMismatchError):
        manyglm(y, "~ bare_sand", data.iloc[:-1], family="poisson")


def test_unknown_family(abundance):
    y, data = abundance
    with pytest.raises(ValueError, match="Unknown family"):
        manyglm(y, "~ bare_sand", data, family="gamma")


def test_empty_response_fails_to_fit(abundance):
    y, data = abundance
    y = y.copy()
    y["Alopacce"] = 0
    with pytest.raises(RefitConvergenceError, match="Alopacce"):
        manyglm(y, "~ bare_sand", data, family="poisson")


def test_binomial_family(abundance):
    y, data = abundance
    presence = (y > y.median()).astype(int)
    fit = manyglm(presence, "~ bare_sand", data, family="binomial")
    mu = fit.fitted()
    assert np.all((mu > 0) & (mu < 1))


def test_singular_dispersion_fit_is_a_convergence_error(monkeypatch, abundance):
    y, data = abundance

    def singular_fit(self, *args, **kwargs):
        raise np.linalg.LinAlgError("Singular matrix")

    monkeypatch.setattr(sm.NegativeBinomial, "fit", singular_fit)
    with pytest.raises(RefitConvergenceError, match="Singular matrix"):
        manyglm(y, "~ bare_sand", data, family="negative.binomial")

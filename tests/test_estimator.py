import numpy as np
import pytest

from ecopower import PowerCurve, effect_alt


@pytest.fixture(scope="module")
def curve(cord_poisson):
    coeffs = effect_alt(
        cord_poisson,
        2.0,
        ["Alopacce", "Arctlute", "Trocterr"],
        ["Alopcune", "Zoraspin"],
        "bare_sand",
    )
    estimator = PowerCurve(
        coeffs, "bare_sand", nsim=4, ncrit=4, ncores=1, n_samp=2
    )
    return estimator.fit(cord_poisson, [10, 40])


def test_landscape(curve):
    assert list(curve.landscape_.columns) == ["N", "power", "n_failed"]
    assert list(curve.landscape_["N"]) == [10, 40]
    assert curve.landscape_["power"].between(0, 1).all()


def test_predict(curve):
    assert curve.predict(0.0) == 10
    assert np.isnan(curve.predict(1.01))


def test_params(curve):
    params = curve.get_params()
    assert params["term"] == "bare_sand"
    assert params["nsim"] == 4


def test_predict_before_fit(cord_poisson):
    estimator = PowerCurve(cord_poisson.obj.coefficients, "bare_sand")
    with pytest.raises(RuntimeError):
        estimator.predict()


def test_empty_grid(cord_poisson):
    estimator = PowerCurve(cord_poisson.obj.coefficients, "bare_sand")
    with pytest.raises(ValueError):
        estimator.fit(cord_poisson, [])

import numpy as np
import pytest

from ecopower import cord


def test_sigma_is_a_correlation_matrix(cord_poisson):
    sigma = cord_poisson.sigma.to_numpy()
    np.testing.assert_allclose(np.diag(sigma), 1.0)
    np.testing.assert_allclose(sigma, sigma.T)
    assert np.linalg.eigvalsh(sigma).min() > 0
    assert cord_poisson.loadings.shape == (6, 2)
    assert list(cord_poisson.loadings.columns) == ["LV1", "LV2"]


def test_seed_reproducibility(fit_poisson):
    first = cord(fit_poisson, nlv=1, n_samp=2, seed=7)
    second = cord(fit_poisson, nlv=1, n_samp=2, seed=7)
    np.testing.assert_allclose(first.sigma, second.sigma)


@pytest.mark.parametrize("nlv", [0, 6])
def test_invalid_latent_variables(fit_poisson, nlv):
    with pytest.raises(ValueError, match="nlv"):
        cord(fit_poisson, nlv=nlv)


def test_simulate_counts(cord_poisson):
    rng = np.random.default_rng(3)
    y = cord_poisson.simulate(
        cord_poisson.obj.coefficients, cord_poisson.obj.x, rng
    )
    assert y.shape == cord_poisson.obj.y.shape
    assert list(y.columns) == cord_poisson.obj.responses
    values = y.to_numpy()
    assert np.all(values >= 0)
    np.testing.assert_array_equal(values, np.round(values))

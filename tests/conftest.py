import numpy as np
import pandas as pd
import pytest

from ecopower import cord, manyglm

SPECIES = ["Alopacce", "Alopcune", "Arctlute", "Pardnigr", "Trocterr", "Zoraspin"]


def simulate_abundance(n_sites: int, seed: int):
    """Overdispersed counts with a mild bare-sand gradient."""
    rng = np.random.default_rng(seed)
    data = pd.DataFrame(
        {
            "bare_sand": rng.normal(size=n_sites),
            "treatment": np.resize(["A", "B", "C"], n_sites),
        }
    )
    slopes = np.array([0.3, -0.3, 0.2, 0.0, 0.1, -0.1])
    mu = np.exp(2.0 + np.outer(data["bare_sand"], slopes))
    size = 2.0
    y = rng.negative_binomial(size, size / (size + mu))
    return pd.DataFrame(y, columns=SPECIES), data


@pytest.fixture(scope="session")
def abundance():
    return simulate_abundance(n_sites=30, seed=2024)


@pytest.fixture(scope="session")
def fit_nb(abundance):
    y, data = abundance
    return manyglm(y, "~ bare_sand", data, family="negative.binomial")


@pytest.fixture(scope="session")
def fit_poisson(abundance):
    y, data = abundance
    return manyglm(y, "~ bare_sand", data, family="poisson")


@pytest.fixture(scope="session")
def fit_factor(abundance):
    y, data = abundance
    return manyglm(y, "~ treatment + bare_sand", data, family="poisson")


@pytest.fixture(scope="session")
def cord_poisson(fit_poisson):
    return cord(fit_poisson, nlv=2, n_samp=3, seed=1)


@pytest.fixture(scope="session")
def cord_factor(fit_factor):
    return cord(fit_factor, nlv=2, n_samp=3, seed=1)


@pytest.fixture
def increasers():
    return ["Alopacce", "Arctlute", "Trocterr"]


@pytest.fixture
def decreasers():
    return ["Alopcune", "Zoraspin"]

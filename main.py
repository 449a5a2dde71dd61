# Usage example

import numpy as np
import pandas as pd

from ecopower import cord, effect_alt, equivtest, manyglm, powersim

if __name__ == "__main__":
    rng = np.random.default_rng(13)

    # A pilot study: 28 sites, 6 taxa and a bare sand gradient
    n_sites = 28
    data = pd.DataFrame({"bare_sand": rng.normal(size=n_sites)})
    mu = np.exp(1.5 + np.outer(data["bare_sand"], [0.4, -0.3, 0.2, 0, 0, 0.1]))
    abund = pd.DataFrame(
        rng.negative_binomial(2, 2 / (2 + mu)),
        columns=[
            "Alopacce",
            "Alopcune",
            "Arctlute",
            "Pardnigr",
            "Trocterr",
            "Zoraspin",
        ],
    )

    # Fit the marginal GLMs and the copula
    fit_glm = manyglm(abund, "~ bare_sand", data, family="negative.binomial")
    fit_cord = cord(fit_glm, nlv=2, n_samp=10, seed=13)

    # Taxa expected to increase / decrease with bare sand
    increasers = ["Alopacce", "Arctlute", "Pardnigr"]
    decreasers = ["Alopcune", "Zoraspin"]

    # A 1.5-fold change per unit of bare sand
    effect_mat = effect_alt(
        fit_glm, 1.5, increasers, decreasers, term="bare_sand"
    )

    # Power with 50 sites
    out = powersim(
        fit_cord,
        coeffs=effect_mat,
        term="bare_sand",
        N=50,
        nsim=99,
        ncrit=99,
        ncores=2,
        seed=13,
    )
    print(out)

    # Is the observed gradient smaller than a 1.5-fold change?
    print(
        equivtest(
            fit_cord, coeffs=effect_mat, term="bare_sand", nsim=99, ncores=2
        )
    )

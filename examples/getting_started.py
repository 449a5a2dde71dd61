import numpy as np
import pandas as pd

from ecopower import PowerCurve, cord, effect_alt, manyglm

rng = np.random.default_rng(1)

# pilot data: four treatments, seven sites each
data = pd.DataFrame({"Treatment": np.repeat(["A", "B", "C", "D"], 7)})
level_effects = {"A": 0.0, "B": 0.2, "C": -0.1, "D": 0.3}
eta = 1.2 + data["Treatment"].map(level_effects).to_numpy()
mu = np.exp(np.tile(eta[:, None], (1, 8)))
abund = pd.DataFrame(
    rng.negative_binomial(2, 2 / (2 + mu)),
    columns=[f"sp{i}" for i in range(1, 9)],
)

fit_glm = manyglm(abund, "~ Treatment", data, family="negative.binomial")
fit_cord = cord(fit_glm, nlv=2, seed=1)

# level C gets the full 1.5-fold effect, B a third of it, D two thirds
effect_mat = effect_alt(
    fit_glm,
    effect_size=1.5,
    increasers=["sp1", "sp2", "sp3"],
    decreasers=["sp7", "sp8"],
    term="Treatment",
    K=[1, 3, 2],
)

power_curve = PowerCurve(
    effect_mat, term="Treatment", nsim=49, ncrit=49, random_state=1
)
power_curve.fit(fit_cord, [20, 40, 80, 120])

print(power_curve.landscape_)
print(f"Sites needed for 80% power: {power_curve.predict(0.8)}")

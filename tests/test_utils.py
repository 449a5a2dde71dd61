import numpy as np
import pytest

from ecopower.utils import check_alpha, check_positive_int, spawn_seeds


def test_spawn_seeds_is_reproducible():
    assert spawn_seeds(7, 5) == spawn_seeds(7, 5)
    assert spawn_seeds(7, 5) != spawn_seeds(8, 5)


def test_spawn_seeds_follow_seed_sequence():
    seeds = spawn_seeds(3, 4)
    expected = [
        int(child.generate_state(1, dtype=np.uint64)[0])
        for child in np.random.SeedSequence(3).spawn(4)
    ]
    assert seeds == expected
    assert len(set(seeds)) == 4
    assert all(isinstance(s, int) for s in seeds)


def test_spawn_seeds_prefix_is_stable():
    # alternative seeds do not depend on how many null seeds follow
    assert spawn_seeds(11, 10)[:3] == spawn_seeds(11, 3)


def test_spawn_seeds_without_seed_or_count():
    assert len(spawn_seeds(None, 3)) == 3
    assert spawn_seeds(1, 0) == []


@pytest.mark.parametrize("value", [0, -1, 2.5, True, "3"])
def test_check_positive_int_rejects(value):
    with pytest.raises(ValueError, match="n"):
        check_positive_int(value, "n")


@pytest.mark.parametrize("alpha", [0, 1, -0.1, 1.5])
def test_check_alpha_rejects(alpha):
    with pytest.raises(ValueError, match="alpha"):
        check_alpha(alpha)

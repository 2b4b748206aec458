import pytest

from sim.errors import ConfigurationError
from sim.random_source import SeededRandom, validate_seed


def test_same_seed_same_sequence():
    a = SeededRandom(42)
    b = SeededRandom(42)
    assert [a.random() for _ in range(50)] == [b.random() for _ in range(50)]


def test_different_seeds_diverge():
    a = SeededRandom(1)
    b = SeededRandom(2)
    assert [a.random() for _ in range(10)] != [b.random() for _ in range(10)]


def test_reset_replays_sequence(rng):
    first = [rng.weighted_d20() for _ in range(30)]
    rng.reset()
    assert [rng.weighted_d20() for _ in range(30)] == first


def test_random_in_unit_interval(rng):
    for _ in range(1000):
        value = rng.random()
        assert 0.0 <= value < 1.0


def test_int_inclusive_bounds(rng):
    seen = {rng.int(3, 5) for _ in range(500)}
    assert seen == {3, 4, 5}


def test_dice_faces(rng):
    assert {rng.d20() for _ in range(2000)} == set(range(1, 21))
    assert {rng.weighted_d20() for _ in range(4000)} == set(range(1, 21))


def test_weighted_d20_favours_middle(rng):
    rolls = [rng.weighted_d20() for _ in range(20000)]
    middle = sum(1 for r in rolls if 9 <= r <= 12) / len(rolls)
    assert 0.35 < middle < 0.45


def test_shuffle_leaves_input_untouched(rng):
    items = list(range(20))
    shuffled = rng.shuffle(items)
    assert items == list(range(20))
    assert sorted(shuffled) == items


def test_weighted_pick_ignores_zero_weight(rng):
    picks = {rng.weighted_pick(["a", "b", "c"], [0, 1, 0]) for _ in range(100)}
    assert picks == {"b"}


def test_fork_is_deterministic_and_independent():
    a = SeededRandom(99).fork("combat")
    b = SeededRandom(99).fork("combat")
    c = SeededRandom(99).fork("world")
    assert a.seed == b.seed
    assert a.seed != c.seed


@pytest.mark.parametrize("seed", [-1, 2 ** 32, 1.5, "7", True])
def test_invalid_seed_rejected(seed):
    with pytest.raises(ConfigurationError):
        validate_seed(seed)
    with pytest.raises(ConfigurationError):
        SeededRandom(seed)


def test_unseeded_source_has_valid_seed():
    assert validate_seed(SeededRandom().seed) >= 0

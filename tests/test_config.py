from pathlib import Path

from resampleval.config import (
    Config,
    EXECUTORS,
    FAILURE_POLICIES,
    RANDOM_SEED,
    STRATEGIES,
    get_config,
)


def test_random_seed_set():
    """RANDOM_SEED convenience constant should match Config defaults."""

    assert RANDOM_SEED == 42
    assert Config.RANDOM_SEED == RANDOM_SEED


def test_config_singleton():
    """get_config should return the same singleton instance across calls."""

    c1 = get_config()
    c2 = get_config()
    assert c1 is c2
    assert isinstance(c1, Config)


def test_harness_defaults():
    assert Config.DEFAULT_SPLIT_FRACTION == 0.8
    assert Config.DEFAULT_CONFIDENCE_LEVEL == 0.95
    assert Config.DEFAULT_FAILURE_POLICY in FAILURE_POLICIES
    assert Config.DEFAULT_EXECUTOR in EXECUTORS
    assert Config.DEFAULT_STRATEGY in STRATEGIES


def test_choice_tuples():
    assert set(FAILURE_POLICIES) == {"skip", "abort"}
    assert set(EXECUTORS) == {"sequential", "thread", "process"}
    assert set(STRATEGIES) == {"split", "bootstrap", "kfold"}


def test_results_dir_is_path():
    assert isinstance(Config.RESULTS_DIR, Path)

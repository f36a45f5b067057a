"""Pytest configuration and shared fixtures for termsum tests.

This module provides:
- Deterministic RNG fixtures for numpy and torch
- An isolated engine environment (no TERMSUM_* overrides leak into tests)
"""

import os

import numpy as np
import pytest
import torch

from termsum.config import HESSIAN_ENV_VAR, THREADS_ENV_VAR


@pytest.fixture(scope="function")
def rng() -> np.random.Generator:
    """Provide a deterministic numpy RNG for tests.

    Uses seed from TEST_RNG_SEED environment variable (default: 0).
    """
    seed = int(os.environ.get("TEST_RNG_SEED", "0"))
    return np.random.default_rng(seed)


@pytest.fixture(scope="function", autouse=True)
def set_random_seeds() -> None:
    seed = int(os.environ.get("TEST_RNG_SEED", "0"))
    np.random.seed(seed)
    torch.manual_seed(seed)


@pytest.fixture(scope="function", autouse=True)
def clean_engine_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv(THREADS_ENV_VAR, raising=False)
    monkeypatch.delenv(HESSIAN_ENV_VAR, raising=False)


@pytest.fixture(params=[1, 4], ids=["serial", "threads4"])
def number_of_threads(request: pytest.FixtureRequest) -> int:
    return request.param

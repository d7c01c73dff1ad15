"""Pytest configuration and fixtures."""

import os

import pytest


@pytest.fixture(autouse=True)
def isolate_environment(monkeypatch):
    """Isolate environment variables for each test.

    This prevents test pollution where one test's environment
    changes affect other tests.
    """
    original_env = os.environ.copy()
    for name in ("DATABANK_DRIVER", "DATABANK_ROOT", "DATABANK_PATH"):
        monkeypatch.delenv(name, raising=False)

    yield

    os.environ.clear()
    os.environ.update(original_env)


@pytest.fixture
def schema():
    """Schema used across driver tests.

    Users are keyed by username and indexed by age and last name;
    activities are indexed by verb and posts by their tag list.
    """
    return {
        "user": {"pkey": "username", "indices": ["age", "name.last"]},
        "activity": {"indices": ["verb"]},
        "post": {"indices": ["tags"]},
    }


@pytest.fixture
def sample_users():
    """A few user records, keyed by username."""
    return {
        "evan": {
            "username": "evan",
            "age": 43,
            "name": {"first": "Evan", "last": "Prodromou"},
        },
        "ada": {
            "username": "ada",
            "age": 36,
            "name": {"first": "Ada", "last": "Lovelace"},
        },
        "alan": {
            "username": "alan",
            "age": 43,
            "name": {"first": "Alan", "last": "Turing"},
        },
        "nobody": {"username": "nobody", "age": 99},
    }

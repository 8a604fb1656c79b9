"""
Shared pytest configuration and fixtures.

Puts the repository root on sys.path so ``fanout_lib`` and ``fanout`` import
without installing, and provides the models used across the suite.
"""
import os
import sys
from typing import Any, Dict

import pytest

_ROOT = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if _ROOT not in sys.path:
    sys.path.insert(0, _ROOT)

EXAMPLES_DIR = os.path.join(_ROOT, "examples")


@pytest.fixture
def examples_dir() -> str:
    return EXAMPLES_DIR


@pytest.fixture
def feature_model() -> Dict[str, Any]:
    """A model with two features, the shape most tests expand over."""
    return {
        "projectName": "TestProject",
        "envs": ["dev", "prod"],
        "owner": {"name": "Bob"},
        "features": [
            {"name": "users", "table": "users_tbl", "nested": {"value": "deep-users"}},
            {"name": "orders", "table": "orders_tbl", "nested": {"value": "deep-orders"}},
        ],
    }


@pytest.fixture
def custom_functions():
    return {
        "shout": lambda s: str(s).upper() + "!",
    }

"""Pytest configuration for all tests."""

import os
import sys

import pytest

# Add the repository root to the Python path so `src.artifact_sync` imports
root_dir = os.path.abspath(os.path.join(os.path.dirname(__file__), ".."))
if root_dir not in sys.path:
    sys.path.insert(0, root_dir)


@pytest.fixture(autouse=True)
def clean_sync_env(monkeypatch):
    """Keep GH_ARTIFACT_SYNC_* variables from the host out of the tests."""
    for name in list(os.environ):
        if name.upper().startswith("GH_ARTIFACT_SYNC_"):
            monkeypatch.delenv(name, raising=False)

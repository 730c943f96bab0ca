"""Test configuration for ensuring package imports and shared fixtures."""

import os
import sys

import pytest

# Make ``import confrerie`` work from a plain checkout, without installing
# the package first.
ROOT_DIR = os.path.abspath(os.path.dirname(__file__))
if ROOT_DIR not in sys.path:
    sys.path.insert(0, ROOT_DIR)


@pytest.fixture
def data_path(tmp_path):
    """Location of a not-yet-created data file inside a fresh directory."""
    return tmp_path / "data" / "app_data.json"


@pytest.fixture
def store(data_path):
    from confrerie.data.store import DocumentStore

    return DocumentStore(data_path)

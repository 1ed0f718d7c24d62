# Filename: tests/conftest.py

import os
import sys

import pytest

# Put the 'final' directory on the path so 'index_interconverter' and
# 'benchmark_lenses' import the same way the scripts import each other.
project_root = os.path.abspath(os.path.join(os.path.dirname(__file__), os.pardir))
final_path = os.path.join(project_root, 'final')

if final_path not in sys.path:
    sys.path.insert(0, final_path)

from index_interconverter import (  # noqa: E402
    AlphabetRegistry,
    SIMPLE_TEXT_ALPHABET_ID,
)


@pytest.fixture
def registry():
    return AlphabetRegistry.with_defaults()


@pytest.fixture
def simple(registry):
    return registry.get(SIMPLE_TEXT_ALPHABET_ID)

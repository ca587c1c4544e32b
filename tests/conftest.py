"""
Pytest configuration for the substepping tests.

Adds src/ and tests/ to sys.path so tests can import substepping and the
synthetic return mappings without installing the package.
"""

import os
import sys

import numpy as np
import pytest

tests_dir = os.path.dirname(os.path.abspath(__file__))
repo_root = os.path.dirname(tests_dir)
src_path = os.path.join(repo_root, 'src')

for path in (tests_dir, src_path):
    if path not in sys.path:
        sys.path.insert(0, path)

from substepping import RecordingDiagnostics  # noqa: E402
from substepping.materials import isotropic_stiffness  # noqa: E402


@pytest.fixture
def recorder() -> RecordingDiagnostics:
    return RecordingDiagnostics(name="test")


@pytest.fixture
def C_iso() -> np.ndarray:
    return isotropic_stiffness(30e3, 0.2)

"""Shared pytest fixtures."""

import sys
from pathlib import Path

import pytest

# tests/ is inside the project root, so parent is the root
root_dir = Path(__file__).parent.parent
if str(root_dir) not in sys.path:
    sys.path.insert(0, str(root_dir))

from circuit.api import ConstraintSystem  # noqa: E402
from gadgets.goldilocks import GoldilocksApi  # noqa: E402


@pytest.fixture
def cs() -> ConstraintSystem:
    return ConstraintSystem()


@pytest.fixture
def gl(cs: ConstraintSystem) -> GoldilocksApi:
    return GoldilocksApi(cs)

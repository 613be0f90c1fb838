"""
Pytest configuration: make sure `import rentflow` and `import api` work
regardless of where pytest is invoked.

It prepends the project root (one directory above *tests/*) to
``sys.path`` **before** any tests are collected.
"""

import sys
from pathlib import Path

import pytest

# /path/to/project/tests -> project root
PROJECT_ROOT = Path(__file__).resolve().parent.parent

if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from rentflow.clock import FixedClock  # noqa: E402


@pytest.fixture
def clock():
    """Clock frozen at 2024-01-01T00:00:00Z."""
    return FixedClock("2024-01-01T00:00:00Z")

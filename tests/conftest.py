import sys
from pathlib import Path

import pytest


BACKEND_PATH = Path(__file__).resolve().parents[1] / "backend"
if str(BACKEND_PATH) not in sys.path:
    sys.path.append(str(BACKEND_PATH))

from factories import FakeWorkRequestRepository  # noqa: E402


@pytest.fixture
def repo():
    return FakeWorkRequestRepository()

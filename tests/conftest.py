from __future__ import annotations

import pytest

from territory_claim.events import EventLog
from territory_claim.models import ClaimParams


@pytest.fixture
def events() -> EventLog:
    return EventLog()


@pytest.fixture
def params() -> ClaimParams:
    return ClaimParams()

from __future__ import annotations

import pytest
from support import T0, make_codec

from cqrs_ddd_reliability.clock import FrozenClock
from cqrs_ddd_reliability.codec import JsonPayloadCodec


@pytest.fixture
def clock() -> FrozenClock:
    return FrozenClock(T0)


@pytest.fixture
def codec() -> JsonPayloadCodec:
    return make_codec()

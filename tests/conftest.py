from __future__ import annotations

from decimal import Decimal

import pytest

from streampay_client.settings import settings


@pytest.fixture(autouse=True)
def default_rate_constants(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(settings, "token_price_usd", Decimal("2000"))
    monkeypatch.setattr(settings, "atomic_decimals", 18)

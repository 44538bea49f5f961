from datetime import date

import pytest

from profile_fusion.store import ProfileStore

FROZEN_TODAY = date(2024, 5, 15)


@pytest.fixture
def store():
    # только в памяти, без файла
    return ProfileStore()


@pytest.fixture
def frozen_today(monkeypatch):
    # today() импортирован по имени в merge/initializer, патчим все места
    for target in ("profile_fusion.utils.today", "profile_fusion.merge.today", "profile_fusion.initializer.today"):
        monkeypatch.setattr(target, lambda: FROZEN_TODAY)
    return FROZEN_TODAY

from __future__ import annotations

import sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

import pytest

from opportunities.settings import Settings


def make_settings(**overrides) -> Settings:
    values = {
        "fb_email": "scraper@example.com",
        "fb_password": "secret-password",
        "spreadsheet_id": "sheet-123",
        "google_credentials": "e30=",
        "scrape_delay_min_ms": 10,
        "scrape_delay_max_ms": 20,
        "scrape_scroll_count": 2,
        "scrape_max_posts": 5,
    }
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def settings() -> Settings:
    return make_settings()

"""
The shared package is imported by both the server and the listener, so it must not
pull in either side.
"""

from __future__ import annotations

from pathlib import Path

import pytest

SHARED_DIR = Path(__file__).resolve().parent.parent / "alert_feed" / "shared"


@pytest.mark.parametrize("path", sorted(SHARED_DIR.glob("*.py")), ids=lambda p: p.name)
def test_shared_module_stays_independent(path):
    source = path.read_text()
    assert "alert_feed.server" not in source
    assert "alert_feed.client" not in source

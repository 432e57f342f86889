"""Shared test fixtures and configuration."""

from datetime import datetime, timedelta, timezone
import os

import pytest


# Complete test environment that overrides ALL engine config values
TEST_ENV = {
    "CACHE_TTL_SECONDS": "3600",
    "MAX_CONCURRENT_REBUILDS": "2",
    "DEFAULT_QUERY_LIMIT": "20",
    "MAX_QUERY_LIMIT": "200",
    "ENABLE_FUZZY": "true",
    "LOG_LEVEL": "info",
    "LOG_JSON": "false",
}


# Set environment variables immediately when conftest.py is loaded
for key, value in TEST_ENV.items():
    os.environ[key] = value


@pytest.fixture(autouse=True)
def clean_environment(monkeypatch):
    """Pin engine settings for every test."""
    for key, value in TEST_ENV.items():
        monkeypatch.setenv(key, value)


class FakeClock:
    """Manually advanced clock for freshness tests."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def test_settings():
    """Settings with explicit values for type checking."""
    from sci_docs_mcp.config import Settings

    return Settings(cache_ttl_seconds=3600, max_concurrent_rebuilds=2)


NUMPY_MARKDOWN = """\
---
module: numpy
---
# NumPy array creation

Routines that build new arrays.

## numpy.array
---
kind: function
signature: numpy.array(object, dtype=None, *, copy=True)
tags: [array, create]
aliases: [np.array]
---
Create an array.

Build a small array:

```python
np.array([1, 2, 3])
```

## numpy.zeros
---
kind: function
signature: numpy.zeros(shape, dtype=float)
tags: [array, create]
---
Return a new array of given shape and type, filled with zeros.

## numpy.linalg.inv
---
kind: function
signature: numpy.linalg.inv(a)
tags: [linalg]
---
Compute the inverse of a matrix.
"""


@pytest.fixture
def numpy_markdown() -> str:
    return NUMPY_MARKDOWN

import pytest

from coderag.config import IndexConfig
from coderag.indexing import CodebaseIndexer


PRICING_TS = """import { Item } from './types';

// Calculates the total price
export function calculateTotal(items) {
  return items.reduce((sum, item) => sum + item.price, 0);
}
"""

LOGGER_TS = """export class Logger {
  log(message) {
    console.log(message);
  }
}
"""


class FakeClock:
    """Manually advanced clock for TTL and staleness tests."""

    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def project(tmp_path):
    """Two-file TypeScript project."""
    src = tmp_path / "src"
    src.mkdir()
    (src / "pricing.ts").write_text(PRICING_TS, encoding="utf-8")
    (src / "logger.ts").write_text(LOGGER_TS, encoding="utf-8")
    return tmp_path


@pytest.fixture
def indexer(clock):
    return CodebaseIndexer(IndexConfig(), clock=clock)

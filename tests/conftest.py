import pytest
from viewkit.core.buffer import Buffer


@pytest.fixture
def allocations(monkeypatch):
    """Record every buffer created through Buffer.allocate."""
    captured = []
    original = Buffer.allocate

    def recording_allocate(length, dtype=None):
        buf = original(length, dtype)
        captured.append(buf)
        return buf

    monkeypatch.setattr(Buffer, 'allocate', staticmethod(recording_allocate))
    return captured

import pytest

from tracked import use_scheduler


@pytest.fixture(autouse=True)
def scheduler():
    """Each test gets its own scheduler, so no cycle state leaks between tests."""
    with use_scheduler() as s:
        yield s

import os
import pytest


# Auto-mark by folder conventions
def pytest_collection_modifyitems(config, items):
    for item in items:
        p = str(item.fspath)
        if "/tests/contracts/" in p:
            item.add_marker(pytest.mark.contracts)
            item.add_marker(pytest.mark.requires_loopback)


# Skip tests that open a local socket when loopback networking is disabled
def pytest_runtest_setup(item):
    if item.get_closest_marker("requires_loopback"):
        if os.environ.get("NO_LOOPBACK", "").lower() in ("1", "true", "yes"):
            pytest.skip("requires_loopback: NO_LOOPBACK is set")

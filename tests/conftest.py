"""Test configuration for pytest.

This module imports fixtures that should be available to all tests.
"""

# Import fixtures
from tests.fixtures.common import (  # noqa
    clock,
    fake_socket,
    rpc_stub,
    subscription_manager,
)

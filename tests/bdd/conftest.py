"""
Pytest configuration and fixtures for BDD tests.
"""

import os

import pytest

# Set environment variables for testing
os.environ["TEST_MODE"] = "True"


# Global context dictionary for sharing state between steps
@pytest.fixture(scope="function")
def context():
    """Shared context between test steps."""
    return {}

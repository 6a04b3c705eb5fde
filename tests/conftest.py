"""
Shared fixtures for pipetakeoff tests.
"""

import copy

import pytest

from helpers import NETWORK
from pipetakeoff.network_loader import load_network


@pytest.fixture
def network_data():
    return copy.deepcopy(NETWORK)


@pytest.fixture
def network(network_data):
    return load_network(network_data)

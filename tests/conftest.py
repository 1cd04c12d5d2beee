"""Pytest configuration and fixtures for the DocumentDB SDK tests."""

import pytest

from documentdb_sdk.config import ConnectionPolicy
from documentdb_sdk.http_clients import GatewayProxy

from tests.gateway_fixtures import FakeSession


@pytest.fixture
def fake_session():
    return FakeSession()


@pytest.fixture
def make_proxy(fake_session):
    """Factory for proxies wired to the fake session; all are closed afterwards"""
    proxies = []
    
    def factory(endpoint="https://db.example.com:443/", policy=None, **kwargs):
        kwargs.setdefault('session_factory', lambda: fake_session)
        proxy = GatewayProxy(endpoint, policy or ConnectionPolicy(), **kwargs)
        proxies.append(proxy)
        return proxy
    
    yield factory
    
    for proxy in proxies:
        proxy.close()


@pytest.fixture
def master_key():
    # base64 of b"this-is-a-test-master-key-32byte"
    return "dGhpcy1pcy1hLXRlc3QtbWFzdGVyLWtleS0zMmJ5dGU="

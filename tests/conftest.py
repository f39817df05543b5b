"""Test configuration and fixtures."""

import io

import pytest
import pytest_asyncio
from aiohttp import test_utils

from tests.helpers import FakeRegistry
from workflow_oras.credentials import CredentialStore, UsernamePasswordCredentials
from workflow_oras.host import Computer, FlowExecutionOwner, Item, Run, TaskListener


@pytest.fixture
def registry():
    """Anonymous in-process registry."""
    return FakeRegistry()


@pytest_asyncio.fixture
async def registry_server(registry):
    """Serve ``registry`` on a local port."""
    server = test_utils.TestServer(registry.app())
    await server.start_server()
    yield server
    await server.close()


@pytest.fixture
def registry_host(registry_server):
    """``host:port`` of the running registry."""
    return f"{registry_server.host}:{registry_server.port}"


@pytest.fixture
def output():
    return io.StringIO()


@pytest.fixture
def listener(output):
    return TaskListener(output)


@pytest.fixture
def workspace(tmp_path):
    return tmp_path / "workspace" / "p"


@pytest.fixture
def item(workspace):
    return Item(full_name="p", workspace=workspace)


@pytest.fixture
def run(item):
    return Run(parent=item, number=1)


@pytest.fixture
def computer():
    return Computer()


@pytest.fixture
def owner(run, computer):
    return FlowExecutionOwner(executable=run, computer=computer)


@pytest.fixture
def credential_store():
    store = CredentialStore()
    store.add(
        UsernamePasswordCredentials(
            id="registry-creds", username="jenkins", password="s3cret"
        )
    )
    return store


# Pytest configuration
def pytest_configure(config):
    """Configure pytest markers and settings."""
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")

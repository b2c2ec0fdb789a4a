# tests/conftest.py
"""
Shared pytest configuration and fixtures for the seeding test suite.
"""

import logging
import os
import time
from pathlib import Path

import pytest

logging.basicConfig(level=logging.INFO)

# Control whether to use testcontainers
USE_TESTCONTAINERS = os.getenv('USE_TESTCONTAINERS', 'true').lower() == 'true'

# Disable Ryuk if not explicitly enabled (solves Docker connectivity issues)
if 'TESTCONTAINERS_RYUK_DISABLED' not in os.environ:
    os.environ['TESTCONTAINERS_RYUK_DISABLED'] = 'true'

# Set Docker host for Colima if not already set
if 'DOCKER_HOST' not in os.environ:
    colima_socket = Path.home() / '.colima' / 'default' / 'docker.sock'
    if colima_socket.exists():
        os.environ['DOCKER_HOST'] = f'unix://{colima_socket}'

# Import testcontainers conditionally
if USE_TESTCONTAINERS:
    try:
        from testcontainers.postgres import PostgresContainer

        TESTCONTAINERS_AVAILABLE = True
    except ImportError:
        TESTCONTAINERS_AVAILABLE = False
        logging.warning('Testcontainers not available. Falling back to manual configuration.')
else:
    TESTCONTAINERS_AVAILABLE = False


@pytest.fixture(scope='session')
def postgresql_config():
    """PostgreSQL configuration from environment or defaults"""
    return {
        'host': os.getenv('POSTGRES_HOST', 'localhost'),
        'port': int(os.getenv('POSTGRES_PORT', '5432')),
        'database': os.getenv('POSTGRES_DB', 'blink_test'),
        'user': os.getenv('POSTGRES_USER', 'postgres'),
        'password': os.getenv('POSTGRES_PASSWORD', 'postgres'),
    }


@pytest.fixture(scope='session')
def postgres_container():
    """PostgreSQL container for integration tests"""
    if not TESTCONTAINERS_AVAILABLE:
        pytest.skip('Testcontainers not available')

    from testcontainers.core.waiting_utils import wait_for_logs

    container = PostgresContainer(image='postgres:16', username='test_user', password='test_pass', dbname='test_db')
    try:
        container.start()
    except Exception as e:
        pytest.skip(f'Could not start PostgreSQL container: {e}')

    # Wait for PostgreSQL to be ready using log message
    wait_for_logs(container, 'database system is ready to accept connections', timeout=30)

    # PostgreSQL logs "ready" twice - wait a bit more to ensure fully ready
    time.sleep(2)

    yield container

    container.stop()


@pytest.fixture(scope='session')
def postgresql_test_config(request):
    """PostgreSQL configuration from testcontainer or environment"""
    if TESTCONTAINERS_AVAILABLE and USE_TESTCONTAINERS:
        postgres_container = request.getfixturevalue('postgres_container')
        return {
            'host': postgres_container.get_container_host_ip(),
            'port': int(postgres_container.get_exposed_port(5432)),
            'database': 'test_db',
            'user': 'test_user',
            'password': 'test_pass',
        }
    else:
        # Fall back to manual config from environment
        return request.getfixturevalue('postgresql_config')


@pytest.fixture
def user_records():
    """Small set of user records"""
    return [
        {'id': 1, 'name': 'Alice', 'email': 'alice@example.com'},
        {'id': 2, 'name': 'Bob', 'email': 'bob@example.com'},
        {'id': 3, 'name': 'Charlie', 'email': 'charlie@example.com'},
    ]


@pytest.fixture
def tricky_strings():
    """Strings that need quoting or escaping on the wire"""
    return [
        'a\nb|c"d',
        'pipe | inside',
        'quote " inside',
        'carriage\rreturn',
        'back\\slash',
        '\\N',
        '\\\\N',
        '',
        'comma, separated',
        'tab\tinside',
        'plain',
    ]


# Pytest markers for test categorization
def pytest_configure(config):
    """Configure custom pytest markers"""
    config.addinivalue_line('markers', 'unit: Unit tests (fast, no external dependencies)')
    config.addinivalue_line('markers', 'integration: Integration tests (require PostgreSQL)')
    config.addinivalue_line('markers', 'postgresql: Tests requiring PostgreSQL')
    config.addinivalue_line('markers', 'slow: Slow tests (> 30 seconds)')

from typing import List

import pytest
from _pytest.config import Config, Parser
from _pytest.nodes import Item

from cosmos_exporter.app import app


def pytest_addoption(parser: Parser) -> None:
    parser.addoption(
        '--runslow', action='store_true', default=False, help='run slow tests'
    )


def pytest_collection_modifyitems(config: Config, items: List[Item]) -> None:
    if config.getoption('--runslow'):
        return
    skip_slow = pytest.mark.skip(reason='need --runslow option to run')
    for item in items:
        if 'slow' in item.keywords:
            item.add_marker(skip_slow)


@pytest.fixture
def client():
    app.config['TESTING'] = True
    with app.test_client() as test_client:
        yield test_client

import pytest

from tiny_futures.worker import TinyTroupe


@pytest.fixture
def troupe():
    with TinyTroupe(num_workers=4) as troupe:
        yield troupe

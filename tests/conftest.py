import pytest

from tests.helpers import StubSession


@pytest.fixture
def stub_session():
    return StubSession()

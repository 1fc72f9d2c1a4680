import pytest

from tests.helpers import encode, solid, stacked


@pytest.fixture
def solid_image():
    return solid


@pytest.fixture
def stacked_image():
    return stacked


@pytest.fixture
def encode_image():
    return encode

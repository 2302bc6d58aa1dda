import pytest


@pytest.fixture(autouse=True)
def _enforced_api_server(api_context):
    pass

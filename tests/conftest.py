import pytest


@pytest.fixture()
def sample_text() -> str:
    return "John Doe lives at 123 Main St. Call John Doe at home."

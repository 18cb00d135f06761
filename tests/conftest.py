import pytest
from helpers import FakeHistory, FakeReviewSource


@pytest.fixture
def fake_history() -> FakeHistory:
    return FakeHistory()


@pytest.fixture
def fake_review_source() -> FakeReviewSource:
    return FakeReviewSource()

"""Shared pytest fixtures for TPCS-DIFA tests."""
import pytest
from fastapi.testclient import TestClient

from app.main import app


def _make_answers(values):
    """Turn a list of 24 values into the ``{"1": v1, ..., "24": v24}`` map."""
    assert len(values) == 24
    return {str(i + 1): v for i, v in enumerate(values)}


def _with_items(overrides, base=0):
    """24 answers equal to ``base`` except the ``{item: value}`` overrides."""
    values = [base] * 24
    for item, value in overrides.items():
        values[item - 1] = value
    return _make_answers(values)


@pytest.fixture
def answers_with():
    """Factory: ``answers_with({1: 3, 2: -3})`` -> 24 answers, zero elsewhere."""
    return _with_items


@pytest.fixture
def answers_from():
    """Factory: ``answers_from([v1, ..., v24])`` -> answer map."""
    return _make_answers


@pytest.fixture
def zero_answers():
    return _make_answers([0] * 24)


@pytest.fixture
def sample_answers():
    """Realistic submission scoring D1=6, D2=-6, D3=6, D4=-4, D5=0, D6=5 (code EIRD)."""
    return _make_answers([
        2, -2, 1, -1,
        -1, 1, -2, 2,
        3, -2, 1, 0,
        -1, 2, 0, 1,
        1, 0, -1, 0,
        2, -1, 1, -1,
    ])


@pytest.fixture
def symmetric_answers():
    """Every direct/reverse pair exactly opposite."""
    return _make_answers([
        3, -3, 2, -2,
        -1, 1, 0, 0,
        1, -1, 1, -1,
        -2, 2, -3, 3,
        0, 0, 2, -2,
        1, -1, -1, 1,
    ])


@pytest.fixture
def tally_body(sample_answers):
    """Tally webhook body using the ``data["1"]..data["24"]`` dialect."""
    return {
        "submissionId": "sub_123",
        "data": {"email": "respondent@example.com", **sample_answers},
    }


@pytest.fixture
def client():
    """Create a TestClient for the FastAPI application."""
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides.clear()

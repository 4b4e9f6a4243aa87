"""API test fixtures -- helpers for configuring mock session returns."""
from unittest.mock import AsyncMock, MagicMock
from uuid import uuid4

import pytest

from tests.conftest import NOW


def make_mock_result(scalar_value=None, scalars_list=None, row=None, rows=None):
    """
    Create a mock SQLAlchemy Result object.

    ``row`` feeds ``one()`` / ``one_or_none()``; ``rows`` feeds ``all()``.
    """
    result = MagicMock()
    result.scalar_one_or_none = MagicMock(return_value=scalar_value)

    scalars_mock = MagicMock()
    scalars_mock.all = MagicMock(return_value=scalars_list or [])
    scalars_mock.unique = MagicMock(return_value=scalars_mock)
    result.scalars = MagicMock(return_value=scalars_mock)
    result.first = MagicMock(return_value=row)
    result.one = MagicMock(return_value=row)
    result.one_or_none = MagicMock(return_value=row)
    result.all = MagicMock(return_value=rows or [])
    result.rowcount = len(scalars_list) if scalars_list else (1 if scalar_value else 0)

    return result


def empty_result():
    """Result for statements whose return value is ignored (UPDATE etc.)."""
    return make_mock_result()


@pytest.fixture(autouse=True)
def _refresh_fills_defaults(mock_session):
    """Mimic session.refresh loading column defaults the database would assign."""
    async def _refresh(instance, *args, **kwargs):
        if getattr(instance, "id", None) is None:
            instance.id = uuid4()
        for name in ("created_at", "updated_at"):
            if getattr(instance, name, None) is None:
                setattr(instance, name, NOW)

    mock_session.refresh = AsyncMock(side_effect=_refresh)
    return mock_session

"""Shared pytest fixtures for PartSource unit tests."""

from unittest.mock import AsyncMock, MagicMock

import pytest


def make_result(value=None, values=None, rows=None):
    """Mock of the object returned by ``AsyncSession.execute``."""
    result = MagicMock()
    result.scalar_one_or_none.return_value = value
    result.scalar_one.return_value = value
    result.scalar.return_value = value
    scalars = MagicMock()
    scalars.all.return_value = list(values or [])
    scalars.first.return_value = (values or [None])[0]
    result.scalars.return_value = scalars
    result.all.return_value = list(rows or [])
    result.fetchall.return_value = list(rows or [])
    return result


@pytest.fixture
def mock_db():
    """A mock AsyncSession with a working ``begin_nested`` savepoint."""
    session = AsyncMock()
    session.add = MagicMock()
    session.add_all = MagicMock()
    session.delete = AsyncMock()
    session.flush = AsyncMock()
    session.refresh = AsyncMock()

    savepoint = MagicMock()
    savepoint.__aenter__ = AsyncMock(return_value=savepoint)
    savepoint.__aexit__ = AsyncMock(return_value=False)
    session.begin_nested = MagicMock(return_value=savepoint)
    return session

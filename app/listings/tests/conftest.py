"""
Pytest fixtures for listing tests.
"""

import pytest

from listings.tests.factories import ListingFactory, UserFactory


@pytest.fixture
def owner(db):
    """Create a listing owner."""
    return UserFactory()


@pytest.fixture
def listing(db, owner):
    """Create an approved listing with no paid term."""
    return ListingFactory(owner=owner)

"""
Factory Boy factories for listing test data.

Usage:
    from listings.tests.factories import ListingFactory, UserFactory

    listing = ListingFactory()                       # approved, no term yet
    pending = ListingFactory(moderation_status=ModerationStatus.PENDING)
    active = ListingFactory(active_term=True)
"""

from datetime import timedelta

import factory
from django.utils import timezone

from listings.models import Listing, ListingTier, ModerationStatus, TermStatus


class UserFactory(factory.django.DjangoModelFactory):
    """Factory for django.contrib.auth users."""

    class Meta:
        model = "auth.User"
        django_get_or_create = ("username",)
        skip_postgeneration_save = True

    username = factory.Sequence(lambda n: f"owner{n}")
    email = factory.LazyAttribute(lambda o: f"{o.username}@example.com")
    password = factory.django.Password("testpass123")
    is_active = True


class ListingFactory(factory.django.DjangoModelFactory):
    """
    Factory for Listing instances.

    Defaults to an approved listing without a paid term, i.e. one that is
    ready for its first payment.

    Traits:
        active_term: Term running from 30 days ago to 150 days from now
        expired_term: Term that ended yesterday, still marked active
    """

    class Meta:
        model = Listing

    owner = factory.SubFactory(UserFactory)
    name = factory.Sequence(lambda n: f"Hidden Gem {n}")
    location = "Westlands, Nairobi"
    moderation_status = ModerationStatus.APPROVED
    tier = ListingTier.STANDARD
    term_status = TermStatus.INACTIVE

    class Params:
        active_term = factory.Trait(
            term_status=TermStatus.ACTIVE,
            current_term_start=factory.LazyFunction(lambda: timezone.now() - timedelta(days=30)),
            current_term_end=factory.LazyFunction(lambda: timezone.now() + timedelta(days=150)),
        )
        expired_term = factory.Trait(
            term_status=TermStatus.ACTIVE,
            current_term_start=factory.LazyFunction(lambda: timezone.now() - timedelta(days=183)),
            current_term_end=factory.LazyFunction(lambda: timezone.now() - timedelta(days=1)),
        )

"""
Tests for listings.py - creating, browsing, filtering and deleting skills.
"""
import pytest

import listings
from errors import AuthorizationError, NotFoundError, ValidationError


def draft(**overrides):
    fields = {
        "name": "Guitar basics",
        "description": "Chords and strumming",
        "payment_mode": "credits",
        "payment_amount": 30,
        "session_mode": "online",
    }
    fields.update(overrides)
    return fields


class TestCreateListing:
    def test_created_listing_appears_once_for_owner(self, store):
        created = listings.create_listing(store.listings, "u1", "u1@example.com", draft())
        mine = listings.list_by_owner(store.listings, "u1")
        assert [s.id for s in mine].count(created.id) == 1
        assert created.owner_email == "u1@example.com"
        assert created.created_at is not None

    def test_strips_text(self, store):
        created = listings.create_listing(store.listings, "u1", "u1@example.com", draft(name="  Chess  "))
        assert created.name == "Chess"

    def test_favor_amount_forced_to_zero(self, store):
        created = listings.create_listing(
            store.listings, "u1", "u1@example.com",
            draft(payment_mode="favor", payment_amount=50, session_mode="in-person"),
        )
        assert created.payment_amount == 0

    @pytest.mark.parametrize("overrides", [
        {"name": ""},
        {"name": "   "},
        {"description": ""},
        {"payment_mode": "cash"},
        {"payment_mode": None},
        {"session_mode": "telepathy"},
        {"payment_amount": 0},
        {"payment_amount": -5},
        {"payment_amount": None},
        {"payment_amount": "30"},
        {"payment_amount": True},
    ])
    def test_invalid_drafts_rejected_before_store(self, store, overrides):
        with pytest.raises(ValidationError):
            listings.create_listing(store.listings, "u1", "u1@example.com", draft(**overrides))
        assert store.listings.list_all() == []


class TestBrowse:
    def test_list_all_excludes_own(self, store):
        listings.create_listing(store.listings, "u1", "u1@example.com", draft(name="Mine"))
        theirs = listings.create_listing(store.listings, "u2", "u2@example.com", draft(name="Theirs"))
        assert [s.id for s in listings.list_all(store.listings, excluding_owner_id="u1")] == [theirs.id]
        assert len(listings.list_all(store.listings)) == 2

    def test_get_listing(self, store):
        created = listings.create_listing(store.listings, "u1", "u1@example.com", draft())
        assert listings.get_listing(store.listings, created.id) == created
        with pytest.raises(NotFoundError):
            listings.get_listing(store.listings, "missing")


class TestDeleteListing:
    def test_owner_can_delete(self, store):
        created = listings.create_listing(store.listings, "u1", "u1@example.com", draft())
        listings.delete_listing(store.listings, created.id, "u1")
        assert listings.list_by_owner(store.listings, "u1") == []

    def test_non_owner_cannot_delete(self, store):
        created = listings.create_listing(store.listings, "u1", "u1@example.com", draft())
        with pytest.raises(AuthorizationError):
            listings.delete_listing(store.listings, created.id, "u2")
        assert listings.get_listing(store.listings, created.id) is not None

    def test_missing_listing(self, store):
        with pytest.raises(NotFoundError):
            listings.delete_listing(store.listings, "missing", "u1")


class TestFilterAndSearch:
    @pytest.fixture
    def catalog(self, store):
        listings.create_listing(store.listings, "u1", "ada@example.com", draft(name="Guitar"))
        listings.create_listing(store.listings, "u2", "bob@example.com",
                                draft(name="Chess", description="Openings", payment_mode="favor",
                                      session_mode="in-person"))
        listings.create_listing(store.listings, "u3", "cy@example.com",
                                draft(name="Python", description="Intro to coding", session_mode="in-person"))
        return listings.list_all(store.listings)

    def test_no_filters_is_identity(self, catalog):
        assert listings.filter_listings(catalog, None, None) == catalog

    def test_by_payment_mode(self, catalog):
        assert [s.name for s in listings.filter_listings(catalog, payment_mode="favor")] == ["Chess"]

    def test_by_both_modes(self, catalog):
        result = listings.filter_listings(catalog, "credits", "in-person")
        assert [s.name for s in result] == ["Python"]

    def test_filter_is_idempotent(self, catalog):
        once = listings.filter_listings(catalog, "credits", "online")
        assert listings.filter_listings(once, "credits", "online") == once

    def test_filter_does_not_mutate_input(self, catalog):
        before = list(catalog)
        listings.filter_listings(catalog, "favor", None)
        assert catalog == before

    def test_search_matches_name_description_and_owner(self, catalog):
        assert [s.name for s in listings.search_listings(catalog, "CHESS")] == ["Chess"]
        assert [s.name for s in listings.search_listings(catalog, "coding")] == ["Python"]
        assert [s.name for s in listings.search_listings(catalog, "ada@")] == ["Guitar"]

    def test_blank_search_returns_everything(self, catalog):
        assert listings.search_listings(catalog, "  ") == catalog

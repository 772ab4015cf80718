"""Tests for the shared cap computation."""

import pytest

from duelvault.models.card import CardIdentity, DeckSection, Ruleset
from duelvault.models.inventory import InventoryIndex
from duelvault.models.mutation import ClampReason
from duelvault.services.deck_rules import (
    BanlistUnavailableError,
    Headroom,
    Pending,
    addition_headroom,
    copy_limit,
)


def _unreachable_banlist(card: CardIdentity, ruleset: Ruleset):
    raise BanlistUnavailableError("banlist service timed out")


class TestCopyLimit:
    def test_generic_cap(self, make_deck, dark_magician) -> None:
        assert copy_limit(dark_magician, make_deck()) == (3, ClampReason.COPY_LIMIT)

    def test_forbidden(self, make_deck, pot_of_greed) -> None:
        assert copy_limit(pot_of_greed, make_deck()) == (0, ClampReason.FORBIDDEN)

    def test_limited_and_ruleset(self, make_deck, raigeki) -> None:
        assert copy_limit(raigeki, make_deck()) == (1, ClampReason.BANLIST_LIMIT)
        assert copy_limit(raigeki, make_deck(ruleset=Ruleset.OCG)) == (
            2,
            ClampReason.BANLIST_LIMIT,
        )

    def test_enforcement_off_ignores_banlist(self, make_deck, pot_of_greed) -> None:
        deck = make_deck(respect_banlist=False)
        assert copy_limit(pot_of_greed, deck) == (3, ClampReason.COPY_LIMIT)

    def test_banlist_outage_falls_back_to_generic_cap(self, make_deck, pot_of_greed) -> None:
        limit, reason = copy_limit(pot_of_greed, make_deck(), _unreachable_banlist)
        assert (limit, reason) == (3, ClampReason.COPY_LIMIT)


class TestHeadroom:
    def test_clamp(self) -> None:
        headroom = Headroom(available=2, reason=ClampReason.SECTION_CAPACITY)
        assert headroom.clamp(5) == 2
        assert headroom.clamp(1) == 1
        assert headroom.clamp(-3) == 0

    def test_section_mismatch_binds_first(
        self, make_deck, make_inventory, make_edition, thousand_eyes
    ) -> None:
        edition = make_edition(thousand_eyes)
        inventory = make_inventory([(thousand_eyes, edition, 3)])

        headroom = addition_headroom(
            make_deck(), inventory, thousand_eyes, DeckSection.MAIN, edition
        )

        assert headroom == Headroom(0, ClampReason.SECTION_MISMATCH)

    def test_edition_ownership(
        self, make_deck, make_inventory, make_edition, dark_magician
    ) -> None:
        edition = make_edition(dark_magician)
        inventory = make_inventory([(dark_magician, edition, 1)])

        headroom = addition_headroom(
            make_deck(), inventory, dark_magician, DeckSection.MAIN, edition
        )

        assert headroom == Headroom(1, ClampReason.EDITION_OWNERSHIP)

    def test_card_level_ownership_counts_all_editions(
        self, make_deck, make_inventory, make_edition, dark_magician, dark_magician_reprint
    ) -> None:
        inventory = make_inventory(
            [
                (dark_magician, make_edition(dark_magician), 1),
                (dark_magician_reprint, make_edition(dark_magician_reprint), 1),
            ]
        )

        headroom = addition_headroom(make_deck(), inventory, dark_magician, DeckSection.MAIN)

        assert headroom == Headroom(2, ClampReason.CARD_OWNERSHIP)

    def test_pending_claims_room(
        self, make_deck, make_inventory, make_edition, filler, dark_magician
    ) -> None:
        stacks = filler(57)
        edition = make_edition(dark_magician)
        inventory = make_inventory(stacks, [(dark_magician, edition, 3)])
        deck = make_deck(stacks)

        without = addition_headroom(deck, inventory, dark_magician, DeckSection.MAIN, edition)
        with_pending = addition_headroom(
            deck,
            inventory,
            dark_magician,
            DeckSection.MAIN,
            edition,
            pending=Pending(section=2, name=0, edition=0),
        )

        assert without == Headroom(3, ClampReason.COPY_LIMIT)
        assert with_pending == Headroom(1, ClampReason.SECTION_CAPACITY)

    @pytest.mark.parametrize("section", list(DeckSection))
    def test_unavailable_inventory_skips_ownership(self, make_deck, filler, section) -> None:
        card, edition, _ = filler(1, section=section)[0]

        headroom = addition_headroom(
            make_deck(), InventoryIndex.unavailable(), card, section, edition
        )

        assert headroom == Headroom(3, ClampReason.COPY_LIMIT)

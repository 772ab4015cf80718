"""Shared fixtures: a small card pool plus deck and inventory builders."""

from collections.abc import Callable, Iterable

import pytest

from duelvault.models.card import BanlistStatus, CardIdentity, DeckSection, Edition, Ruleset
from duelvault.models.deck import Deck, DeckCardEntry
from duelvault.models.inventory import InventoryIndex, OwnedEdition
from duelvault.services.card_catalog import CardCatalog

# (card, edition, quantity)
Stack = tuple[CardIdentity, Edition, int]


@pytest.fixture
def dark_magician() -> CardIdentity:
    return CardIdentity(
        card_id=46986414,
        name="Dark Magician",
        type_line="Normal Monster",
        frame_type="normal",
    )


@pytest.fixture
def dark_magician_reprint() -> CardIdentity:
    """Same logical card under a second upstream id."""
    return CardIdentity(
        card_id=36996508,
        name="Dark  magician",
        type_line="Normal Monster",
        frame_type="normal",
    )


@pytest.fixture
def pot_of_greed() -> CardIdentity:
    return CardIdentity(
        card_id=55144522,
        name="Pot of Greed",
        type_line="Spell Card",
        frame_type="spell",
        banlist={Ruleset.TCG: BanlistStatus.FORBIDDEN},
    )


@pytest.fixture
def raigeki() -> CardIdentity:
    return CardIdentity(
        card_id=12580477,
        name="Raigeki",
        type_line="Spell Card",
        frame_type="spell",
        banlist={Ruleset.TCG: BanlistStatus.LIMITED, Ruleset.OCG: BanlistStatus.SEMI_LIMITED},
    )


@pytest.fixture
def thousand_eyes() -> CardIdentity:
    return CardIdentity(
        card_id=63519819,
        name="Thousand-Eyes Restrict",
        type_line="Fusion Monster",
        frame_type="fusion",
    )


@pytest.fixture
def catalog(
    dark_magician: CardIdentity,
    dark_magician_reprint: CardIdentity,
    pot_of_greed: CardIdentity,
    raigeki: CardIdentity,
    thousand_eyes: CardIdentity,
) -> CardCatalog:
    return CardCatalog([dark_magician, dark_magician_reprint, pot_of_greed, raigeki, thousand_eyes])


@pytest.fixture
def make_edition() -> Callable[..., Edition]:
    def build(card: CardIdentity, set_code: str | None = None, rarity: str = "Common") -> Edition:
        return Edition(
            card_id=card.card_id,
            set_code=set_code or f"SET-EN{card.card_id % 1000:03d}",
            rarity=rarity,
        )

    return build


@pytest.fixture
def filler() -> Callable[..., list[Stack]]:
    """Distinct owned main-deck cards, three copies per stack."""

    def build(
        copies: int, start_id: int = 900000, section: DeckSection = DeckSection.MAIN
    ) -> list[Stack]:
        type_line = "Normal Monster" if section == DeckSection.MAIN else "Xyz Monster"
        stacks: list[Stack] = []
        index = 0
        while copies > 0:
            quantity = min(3, copies)
            card = CardIdentity(
                card_id=start_id + index,
                name=f"Filler {section.value} {start_id + index}",
                type_line=type_line,
            )
            stacks.append((card, Edition(card.card_id, f"FIL-EN{index:03d}", "Common"), quantity))
            copies -= quantity
            index += 1
        return stacks

    return build


@pytest.fixture
def make_inventory() -> Callable[..., InventoryIndex]:
    def build(*groups: Iterable[Stack]) -> InventoryIndex:
        return InventoryIndex.from_owned(
            OwnedEdition(card=card, edition=edition, quantity=quantity)
            for group in groups
            for card, edition, quantity in group
        )

    return build


@pytest.fixture
def make_deck() -> Callable[..., Deck]:
    """Deck whose entries are the given stacks, each tied to its edition."""

    def build(
        stacks: Iterable[Stack] = (),
        respect_banlist: bool = True,
        ruleset: Ruleset = Ruleset.TCG,
    ) -> Deck:
        deck = Deck(
            id=1,
            owner_id=7,
            name="Test Deck",
            respect_banlist=respect_banlist,
            ruleset=ruleset,
        )
        for entry_id, (card, edition, quantity) in enumerate(stacks, start=1):
            deck.section_entries(card.section).append(
                DeckCardEntry(
                    entry_id=entry_id,
                    card=card,
                    quantity=quantity,
                    section=card.section,
                    edition=edition,
                )
            )
        return deck

    return build

"""
Card Catalog Lookup.

Read-only adapter over card metadata already fetched from the external
metadata source. Resolves a card id to its CardIdentity.

INVARIANTS:
1. The catalog performs no network calls; it is built from records the
   surrounding application already holds
2. An id the catalog cannot resolve is a fault (UnknownCardError), distinct
   from a card that is merely unowned
3. Banlist labels are parsed once, at construction
"""

import logging
from collections.abc import Iterable, Iterator, Mapping
from typing import Any

from duelvault.models.card import BanlistStatus, CardIdentity, Ruleset, name_key
from duelvault.models.failure import UnknownCardError

logger = logging.getLogger(__name__)

# Metadata source field -> ruleset
_BANLIST_FIELDS: dict[str, Ruleset] = {
    "ban_tcg": Ruleset.TCG,
    "ban_ocg": Ruleset.OCG,
    "ban_goat": Ruleset.GOAT,
}


def parse_banlist(banlist_info: Mapping[str, Any] | None) -> dict[Ruleset, BanlistStatus]:
    """
    Parse a metadata-source banlist block.

    {"ban_tcg": "Limited", "ban_ocg": "Banned"} ->
    {Ruleset.TCG: LIMITED, Ruleset.OCG: FORBIDDEN}

    Unrestricted rulesets are omitted.
    """
    parsed: dict[Ruleset, BanlistStatus] = {}
    for field_name, ruleset in _BANLIST_FIELDS.items():
        status = BanlistStatus.from_label((banlist_info or {}).get(field_name))
        if status != BanlistStatus.UNRESTRICTED:
            parsed[ruleset] = status
    return parsed


def card_from_record(record: Mapping[str, Any]) -> CardIdentity:
    """
    Build a CardIdentity from a metadata-source card record.

    Expected keys: id, name, type, and optionally frameType / frame_type
    and banlist_info.

    Raises:
        ValueError: If id or name is missing
    """
    card_id = record.get("id")
    name = record.get("name")
    if card_id is None or not name:
        raise ValueError(f"Card record missing id or name: {dict(record)!r}")

    return CardIdentity(
        card_id=int(card_id),
        name=str(name),
        type_line=str(record.get("type", "")),
        frame_type=str(record.get("frameType") or record.get("frame_type") or ""),
        banlist=parse_banlist(record.get("banlist_info")),
    )


class CardCatalog:
    """
    Resolves card ids to CardIdentity.

    Several ids may carry the same name (upstream reprint ids). Lookup by
    name returns the first identity registered for that name.
    """

    def __init__(self, cards: Iterable[CardIdentity] = ()) -> None:
        self._by_id: dict[int, CardIdentity] = {}
        self._by_key: dict[str, CardIdentity] = {}
        for card in cards:
            self.add(card)

    @classmethod
    def from_records(cls, records: Iterable[Mapping[str, Any]]) -> "CardCatalog":
        """Build a catalog from raw metadata-source records, skipping bad ones."""
        catalog = cls()
        skipped = 0
        for record in records:
            try:
                catalog.add(card_from_record(record))
            except ValueError:
                skipped += 1
        if skipped:
            logger.warning("Skipped %d malformed card records", skipped)
        return catalog

    def add(self, card: CardIdentity) -> None:
        self._by_id[card.card_id] = card
        self._by_key.setdefault(card.key, card)

    def __contains__(self, card_id: int) -> bool:
        return card_id in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)

    def __iter__(self) -> Iterator[CardIdentity]:
        return iter(self._by_id.values())

    def get(self, card_id: int) -> CardIdentity | None:
        """Card for an id, or None if unknown."""
        return self._by_id.get(card_id)

    def resolve(self, card_id: int) -> CardIdentity:
        """
        Card for an id.

        Raises:
            UnknownCardError: If the id is not in the catalog
        """
        card = self._by_id.get(card_id)
        if card is None:
            raise UnknownCardError(card_id)
        return card

    def find_by_name(self, name: str) -> CardIdentity | None:
        return self._by_key.get(name_key(name))

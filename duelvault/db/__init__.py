from duelvault.db.database import get_session, init_db
from duelvault.db.operations import (
    add_owned_edition,
    card_to_model,
    create_deck,
    deck_to_model,
    delete_deck,
    get_deck,
    get_owned_edition,
    get_owned_editions,
    get_shared_deck,
    list_public_decks,
    list_user_decks,
    load_catalog,
    load_inventory,
    owned_edition_to_model,
    remove_owned_edition,
    replace_owned_editions,
    save_deck_entries,
    set_owned_quantity,
    share_deck,
    unshare_deck,
    update_deck_settings,
    upsert_cards,
)

__all__ = [
    "add_owned_edition",
    "card_to_model",
    "create_deck",
    "deck_to_model",
    "delete_deck",
    "get_deck",
    "get_owned_edition",
    "get_owned_editions",
    "get_session",
    "get_shared_deck",
    "init_db",
    "list_public_decks",
    "list_user_decks",
    "load_catalog",
    "load_inventory",
    "owned_edition_to_model",
    "remove_owned_edition",
    "replace_owned_editions",
    "save_deck_entries",
    "set_owned_quantity",
    "share_deck",
    "unshare_deck",
    "update_deck_settings",
    "upsert_cards",
]

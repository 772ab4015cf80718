"""
Deck API endpoints.

Deck CRUD plus the editing workflow: single-card mutations, bulk staged
selections, reconciliation of candidate lists and automated proposals.

Every editing request opens an EditingSession over the stored deck, runs
the engine, validates, and persists under the save policy: the result is
stored when it is valid or when the request sets force=true. The engine
itself never refuses a mutation for being invalid.
"""

import logging
from collections.abc import Iterable
from datetime import datetime
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field, StringConstraints
from sqlalchemy.ext.asyncio import AsyncSession

from duelvault.api.collection import EditionModel
from duelvault.api.proposals import get_proposer
from duelvault.config import settings
from duelvault.db import (
    create_deck,
    deck_to_model,
    delete_deck,
    get_deck,
    get_shared_deck,
    list_public_decks,
    list_user_decks,
    load_catalog,
    load_inventory,
    save_deck_entries,
    share_deck,
    unshare_deck,
    update_deck_settings,
)
from duelvault.db.database import get_session
from duelvault.models.card import DeckSection, Ruleset
from duelvault.models.db import DECK_NAME_MAX_LENGTH, DeckDB
from duelvault.models.deck import Deck
from duelvault.models.inventory import InventoryIndex
from duelvault.models.mutation import MutationResult
from duelvault.models.violation import ValidationReport
from duelvault.services.card_catalog import CardCatalog
from duelvault.services.deck_proposer import DeckProposer, ProposalSuggestion
from duelvault.services.editing_session import EditingSession
from duelvault.services.reconciliation import (
    Candidate,
    Provenance,
    ReconciliationResult,
    TruncationPolicy,
    UnfulfilledItem,
    UnfulfilledReason,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/decks", tags=["decks"])

DeckName = Annotated[
    str, StringConstraints(strip_whitespace=True, min_length=1, max_length=DECK_NAME_MAX_LENGTH)
]


# =============================================================================
# REQUEST / RESPONSE MODELS
# =============================================================================


class DeckCreateRequest(BaseModel):
    user_id: int
    name: DeckName
    is_public: bool = True
    respect_banlist: bool = True
    ruleset: Ruleset | None = None


class DeckUpdateRequest(BaseModel):
    """Deck metadata changes; omitted fields are left unchanged."""

    name: DeckName | None = None
    is_public: bool | None = None
    respect_banlist: bool | None = None
    ruleset: Ruleset | None = None


class DeckEntryResponse(BaseModel):
    entry_id: int
    card_id: int
    card_name: str
    type_line: str
    quantity: int
    section: DeckSection
    edition: EditionModel | None = None


class ViolationResponse(BaseModel):
    kind: str
    detail: str
    card_name: str | None = None
    count: int | None = None


class ValidationResponse(BaseModel):
    """Response model matching the deck validation payload."""

    valid: bool
    violations: list[ViolationResponse] = Field(default_factory=list)
    main_count: int
    extra_count: int


class DeckResponse(BaseModel):
    """Response model for a single deck."""

    id: int
    user_id: int
    name: str
    is_public: bool
    respect_banlist: bool
    ruleset: Ruleset
    main_deck: list[DeckEntryResponse] = Field(default_factory=list)
    extra_deck: list[DeckEntryResponse] = Field(default_factory=list)
    main_count: int = 0
    extra_count: int = 0


class DeckDetailResponse(BaseModel):
    deck: DeckResponse
    validation: ValidationResponse


class ShareResponse(BaseModel):
    deck_id: int
    share_token: str


class DeckSummaryResponse(BaseModel):
    id: int
    user_id: int
    name: str
    is_public: bool
    respect_banlist: bool
    ruleset: Ruleset
    created_at: datetime | None = None
    updated_at: datetime | None = None


class DeckListResponse(BaseModel):
    """Paginated list of deck summaries."""

    data: list[DeckSummaryResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class MutationResponse(BaseModel):
    requested: int
    applied: int
    unfulfilled: int
    reason: str | None = None
    entry_id: int | None = None


class EditResponse(BaseModel):
    """Outcome of an editing request."""

    deck: DeckResponse
    validation: ValidationResponse
    saved: bool
    results: list[MutationResponse] = Field(default_factory=list)


class AddCardRequest(BaseModel):
    card_id: int
    quantity: int = Field(default=1, ge=1)
    section: DeckSection | None = None
    edition: EditionModel | None = None
    force: bool = False


class ChangeQuantityRequest(BaseModel):
    delta: int
    force: bool = False


class BulkSelection(BaseModel):
    edition: EditionModel
    quantity: int = Field(..., description="Pending quantity delta for this edition")
    section: DeckSection | None = None


class BulkAddRequest(BaseModel):
    selections: list[BulkSelection] = Field(..., min_length=1)
    force: bool = False


class BulkAddResponse(EditResponse):
    staged: list[MutationResponse] = Field(default_factory=list)


class CandidateModel(BaseModel):
    card_id: int
    quantity: int
    section: DeckSection | None = None
    card_name: str | None = None
    edition: EditionModel | None = None
    reason: str = ""

    def to_candidate(self, provenance: Provenance) -> Candidate:
        return Candidate(
            card_id=self.card_id,
            quantity=self.quantity,
            section=self.section,
            provenance=provenance,
            card_name=self.card_name,
            edition=self.edition.to_edition() if self.edition else None,
            reason=self.reason,
        )


class ReconcileOptions(BaseModel):
    sections: list[DeckSection] | None = None
    policy: TruncationPolicy | None = None
    apply: bool = True
    force: bool = False


class ReconcileRequest(ReconcileOptions):
    candidates: list[CandidateModel]
    provenance: Provenance = Provenance.IMPORT


class ProposeRequest(ReconcileOptions):
    goal: str = Field(..., min_length=1, max_length=2000)


class UnfulfilledResponse(BaseModel):
    card_name: str
    quantity: int
    reason: UnfulfilledReason
    card_id: int | None = None
    provenance: Provenance | None = None


class ReconcileResponse(BaseModel):
    deck: DeckResponse
    validation: ValidationResponse
    unfulfilled: list[UnfulfilledResponse] = Field(default_factory=list)
    inventory_verified: bool = True
    applied: bool = False
    saved: bool = False


class ProposeResponse(ReconcileResponse):
    explanation: str = ""
    suggestions: list[ProposalSuggestion] = Field(default_factory=list)


# =============================================================================
# CONVERSION HELPERS
# =============================================================================


def deck_response(deck: Deck) -> DeckResponse:
    def entries(section: DeckSection) -> list[DeckEntryResponse]:
        return [
            DeckEntryResponse(
                entry_id=entry.entry_id,
                card_id=entry.card_id,
                card_name=entry.card.name,
                type_line=entry.card.type_line,
                quantity=entry.quantity,
                section=entry.section,
                edition=(
                    EditionModel(
                        card_id=entry.edition.card_id,
                        set_code=entry.edition.set_code,
                        rarity=entry.edition.rarity,
                        language=entry.edition.language,
                    )
                    if entry.edition
                    else None
                ),
            )
            for entry in deck.section_entries(section)
        ]

    return DeckResponse(
        id=deck.id or 0,
        user_id=deck.owner_id,
        name=deck.name,
        is_public=deck.is_public,
        respect_banlist=deck.respect_banlist,
        ruleset=deck.ruleset,
        main_deck=entries(DeckSection.MAIN),
        extra_deck=entries(DeckSection.EXTRA),
        main_count=deck.total(DeckSection.MAIN),
        extra_count=deck.total(DeckSection.EXTRA),
    )


def validation_response(report: ValidationReport) -> ValidationResponse:
    return ValidationResponse(
        valid=report.valid,
        violations=[
            ViolationResponse(
                kind=violation.kind.value,
                detail=violation.detail,
                card_name=violation.card_name,
                count=violation.count,
            )
            for violation in report.violations
        ],
        main_count=report.main_count,
        extra_count=report.extra_count,
    )


def mutation_response(result: MutationResult) -> MutationResponse:
    return MutationResponse(
        requested=result.requested,
        applied=result.applied,
        unfulfilled=result.unfulfilled,
        reason=result.reason.value if result.reason else None,
        entry_id=result.entry_id,
    )


def unfulfilled_response(item: UnfulfilledItem) -> UnfulfilledResponse:
    return UnfulfilledResponse(
        card_name=item.card_name,
        quantity=item.quantity,
        reason=item.reason,
        card_id=item.card_id,
        provenance=item.provenance,
    )


def summary_response(deck: DeckDB) -> DeckSummaryResponse:
    return DeckSummaryResponse(
        id=deck.id,
        user_id=deck.user_id,
        name=deck.name,
        is_public=deck.is_public,
        respect_banlist=deck.respect_banlist,
        ruleset=Ruleset(deck.ruleset),
        created_at=deck.created_at,
        updated_at=deck.updated_at,
    )


def list_response(decks: list[DeckDB], total: int, page: int, limit: int) -> DeckListResponse:
    return DeckListResponse(
        data=[summary_response(deck) for deck in decks],
        total=total,
        page=page,
        limit=limit,
        total_pages=(total + limit - 1) // limit,
    )


# =============================================================================
# WORKFLOW HELPERS
# =============================================================================


async def _require_deck(session: AsyncSession, deck_id: int) -> DeckDB:
    deck_db = await get_deck(session, deck_id)
    if deck_db is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Deck {deck_id} not found",
        )
    return deck_db


async def _open_editor(
    session: AsyncSession,
    deck_db: DeckDB,
    card_ids: Iterable[int] = (),
    inventory: InventoryIndex | None = None,
) -> tuple[EditingSession, CardCatalog]:
    """Editing session over a stored deck, with a catalog covering card_ids."""
    deck = deck_to_model(deck_db)
    if inventory is None:
        inventory = await load_inventory(session, deck.owner_id)
    catalog = await load_catalog(
        session, {entry.card_id for entry in deck.entries()} | set(card_ids)
    )
    editor = EditingSession(
        deck, inventory, catalog, truncation_policy=settings.truncation_policy
    )
    return editor, catalog


async def _persist(
    session: AsyncSession,
    deck_db: DeckDB,
    editor: EditingSession,
    force: bool,
) -> tuple[ValidationReport, bool]:
    """Validate the session's deck and store it under the save policy."""
    report = editor.report()
    if not report.valid and not force:
        logger.info(
            "Deck %d not saved: %d violations",
            deck_db.id,
            len(report.violations),
            extra={"kinds": sorted(kind.value for kind in report.kinds())},
        )
        return report, False
    await save_deck_entries(session, deck_db, editor.deck)
    return report, True


def _reconcile_response(
    result: ReconciliationResult,
    applied: bool,
    saved: bool,
    extra_unfulfilled: Iterable[UnfulfilledItem] = (),
) -> dict[str, object]:
    return {
        "deck": deck_response(result.deck),
        "validation": validation_response(
            ValidationReport(
                violations=result.violations,
                main_count=result.deck.total(DeckSection.MAIN),
                extra_count=result.deck.total(DeckSection.EXTRA),
            )
        ),
        "unfulfilled": [
            unfulfilled_response(item) for item in (*result.unfulfilled, *extra_unfulfilled)
        ],
        "inventory_verified": result.inventory_verified,
        "applied": applied,
        "saved": saved,
    }


async def _run_reconciliation(
    session: AsyncSession,
    deck_db: DeckDB,
    editor: EditingSession,
    candidates: list[Candidate],
    options: ReconcileOptions,
) -> tuple[ReconciliationResult, bool, bool]:
    """Preview or apply a candidate list. Returns (result, applied, saved)."""
    if not options.apply:
        return editor.preview(candidates, options.sections, options.policy), False, False

    result = editor.apply_proposal(candidates, options.sections, options.policy)
    _, saved = await _persist(session, deck_db, editor, options.force)
    return result, True, saved


# =============================================================================
# DECK CRUD
# =============================================================================


@router.post("", response_model=DeckDetailResponse, status_code=status.HTTP_201_CREATED)
async def create_user_deck(
    request: DeckCreateRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DeckDetailResponse:
    """Create an empty deck. An empty deck is reported invalid (main deck < 40)."""
    deck_db = await create_deck(
        session,
        user_id=request.user_id,
        name=request.name,
        is_public=request.is_public,
        respect_banlist=request.respect_banlist,
        ruleset=request.ruleset or settings.default_ruleset,
    )
    editor, _ = await _open_editor(session, deck_db)
    return DeckDetailResponse(
        deck=deck_response(editor.deck), validation=validation_response(editor.report())
    )


@router.get("/public", response_model=DeckListResponse)
async def get_public_decks(
    session: Annotated[AsyncSession, Depends(get_session)],
    search: str | None = None,
    respect_banlist: bool | None = None,
    user_id: int | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> DeckListResponse:
    decks, total = await list_public_decks(
        session,
        search=search,
        respect_banlist=respect_banlist,
        user_id=user_id,
        page=page,
        limit=limit,
    )
    return list_response(decks, total, page, limit)


@router.get("/shared/{share_token}", response_model=DeckDetailResponse)
async def get_shared_user_deck(
    share_token: str,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DeckDetailResponse:
    """Read a deck through its share link, whether or not it is public."""
    deck_db = await get_shared_deck(session, share_token)
    if deck_db is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Shared deck not found",
        )
    editor, _ = await _open_editor(session, deck_db)
    return DeckDetailResponse(
        deck=deck_response(editor.deck), validation=validation_response(editor.report())
    )


@router.get("/user/{user_id}", response_model=DeckListResponse)
async def get_user_decks(
    user_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
    search: str | None = None,
    respect_banlist: bool | None = None,
    page: Annotated[int, Query(ge=1)] = 1,
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> DeckListResponse:
    decks, total = await list_user_decks(
        session,
        user_id,
        search=search,
        respect_banlist=respect_banlist,
        page=page,
        limit=limit,
    )
    return list_response(decks, total, page, limit)


@router.get("/{deck_id}", response_model=DeckDetailResponse)
async def get_user_deck(
    deck_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DeckDetailResponse:
    deck_db = await _require_deck(session, deck_id)
    editor, _ = await _open_editor(session, deck_db)
    return DeckDetailResponse(
        deck=deck_response(editor.deck), validation=validation_response(editor.report())
    )


@router.patch("/{deck_id}", response_model=DeckDetailResponse)
async def update_user_deck(
    deck_id: int,
    request: DeckUpdateRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> DeckDetailResponse:
    """
    Update deck metadata.

    Toggling banlist enforcement never changes stored quantities; the
    returned validation reflects the new setting.
    """
    deck_db = await _require_deck(session, deck_id)
    await update_deck_settings(
        session,
        deck_db,
        name=request.name,
        is_public=request.is_public,
        respect_banlist=request.respect_banlist,
        ruleset=request.ruleset,
    )
    editor, _ = await _open_editor(session, deck_db)
    return DeckDetailResponse(
        deck=deck_response(editor.deck), validation=validation_response(editor.report())
    )


@router.delete("/{deck_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_user_deck(
    deck_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> None:
    if not await delete_deck(session, deck_id):
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=f"Deck {deck_id} not found",
        )


@router.post("/{deck_id}/share", response_model=ShareResponse)
async def share_user_deck(
    deck_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> ShareResponse:
    """Create a share link; sharing an already shared deck returns its token."""
    deck_db = await _require_deck(session, deck_id)
    token = await share_deck(session, deck_db)
    return ShareResponse(deck_id=deck_db.id, share_token=token)


@router.delete("/{deck_id}/share", status_code=status.HTTP_204_NO_CONTENT)
async def unshare_user_deck(
    deck_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> None:
    deck_db = await _require_deck(session, deck_id)
    await unshare_deck(session, deck_db)


@router.get("/{deck_id}/validate", response_model=ValidationResponse)
async def validate_deck(
    deck_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> ValidationResponse:
    """Every rule violation of the stored deck."""
    deck_db = await _require_deck(session, deck_id)
    editor, _ = await _open_editor(session, deck_db)
    return validation_response(editor.report())


# =============================================================================
# EDITING
# =============================================================================


@router.post("/{deck_id}/cards", response_model=EditResponse)
async def add_card(
    deck_id: int,
    request: AddCardRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> EditResponse:
    """
    Add copies of a card, clamped to every deck rule.

    The result reports how many copies were applied and which rule
    stopped the rest.
    """
    deck_db = await _require_deck(session, deck_id)
    edition = request.edition.to_edition() if request.edition else None
    card_ids = [request.card_id] if edition is None else [request.card_id, edition.card_id]
    editor, catalog = await _open_editor(session, deck_db, card_ids)
    card = catalog.resolve(request.card_id)

    if edition is not None and catalog.resolve(edition.card_id).key != card.key:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail=f"Edition {edition.label()} is not a printing of {card.name}",
        )

    result = editor.store.add_entry(
        card, request.quantity, section=request.section, edition=edition
    )
    report, saved = await _persist(session, deck_db, editor, request.force)
    return EditResponse(
        deck=deck_response(editor.deck),
        validation=validation_response(report),
        saved=saved,
        results=[mutation_response(result)],
    )


@router.patch("/{deck_id}/cards/{entry_id}", response_model=EditResponse)
async def change_card_quantity(
    deck_id: int,
    entry_id: int,
    request: ChangeQuantityRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> EditResponse:
    """Change an entry's quantity; increases apply fully or not at all."""
    deck_db = await _require_deck(session, deck_id)
    editor, _ = await _open_editor(session, deck_db)

    result = editor.store.change_quantity(entry_id, request.delta)
    report, saved = await _persist(session, deck_db, editor, request.force)
    return EditResponse(
        deck=deck_response(editor.deck),
        validation=validation_response(report),
        saved=saved,
        results=[mutation_response(result)],
    )


@router.delete("/{deck_id}/cards/{entry_id}", response_model=EditResponse)
async def remove_card(
    deck_id: int,
    entry_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
    force: bool = False,
) -> EditResponse:
    deck_db = await _require_deck(session, deck_id)
    editor, _ = await _open_editor(session, deck_db)

    removed = editor.store.remove_entry(entry_id)
    report, saved = await _persist(session, deck_db, editor, force)
    return EditResponse(
        deck=deck_response(editor.deck),
        validation=validation_response(report),
        saved=saved,
        results=[
            MutationResponse(
                requested=-removed.quantity,
                applied=-removed.quantity,
                unfulfilled=0,
                entry_id=entry_id,
            )
        ],
    )


@router.delete("/{deck_id}/cards", response_model=EditResponse)
async def clear_cards(
    deck_id: int,
    session: Annotated[AsyncSession, Depends(get_session)],
    force: bool = False,
) -> EditResponse:
    """
    Remove every entry from both sections.

    An empty deck is below the main deck floor, so the cleared deck is only
    stored with force=true.
    """
    deck_db = await _require_deck(session, deck_id)
    editor, _ = await _open_editor(session, deck_db)

    removed = list(editor.deck.entries())
    editor.store.clear()
    report, saved = await _persist(session, deck_db, editor, force)
    return EditResponse(
        deck=deck_response(editor.deck),
        validation=validation_response(report),
        saved=saved,
        results=[
            MutationResponse(
                requested=-entry.quantity,
                applied=-entry.quantity,
                unfulfilled=0,
                entry_id=entry.entry_id,
            )
            for entry in removed
        ],
    )


@router.post("/{deck_id}/cards/bulk", response_model=BulkAddResponse)
async def add_cards_bulk(
    deck_id: int,
    request: BulkAddRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> BulkAddResponse:
    """
    Stage many edition selections and commit them together.

    Each selection is staged with the same caps a commit applies; rejected
    selections are reported and left out of the commit.
    """
    deck_db = await _require_deck(session, deck_id)
    editor, _ = await _open_editor(
        session, deck_db, [selection.edition.card_id for selection in request.selections]
    )

    staged = [
        editor.staging.adjust(selection.edition.to_edition(), selection.quantity, selection.section)
        for selection in request.selections
    ]
    committed = editor.commit_staging()
    report, saved = await _persist(session, deck_db, editor, request.force)
    return BulkAddResponse(
        deck=deck_response(editor.deck),
        validation=validation_response(report),
        saved=saved,
        staged=[mutation_response(result) for result in staged],
        results=[mutation_response(result) for result in committed],
    )


@router.post("/{deck_id}/reconcile", response_model=ReconcileResponse)
async def reconcile_deck(
    deck_id: int,
    request: ReconcileRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
) -> ReconcileResponse:
    """
    Replace deck sections with a reconciled candidate list.

    apply=false returns the reconciled deck without storing it.
    """
    deck_db = await _require_deck(session, deck_id)
    editor, _ = await _open_editor(
        session, deck_db, [candidate.card_id for candidate in request.candidates]
    )
    candidates = [candidate.to_candidate(request.provenance) for candidate in request.candidates]

    result, applied, saved = await _run_reconciliation(
        session, deck_db, editor, candidates, request
    )
    return ReconcileResponse(**_reconcile_response(result, applied, saved))


@router.post("/{deck_id}/propose", response_model=ProposeResponse)
async def propose_deck(
    deck_id: int,
    request: ProposeRequest,
    session: Annotated[AsyncSession, Depends(get_session)],
    proposer: Annotated[DeckProposer, Depends(get_proposer)],
) -> ProposeResponse:
    """
    Ask the automated proposer for a deck and reconcile its answer.

    Proposed cards the catalog does not know are reported as unfulfilled
    instead of failing the whole proposal.
    """
    deck_db = await _require_deck(session, deck_id)
    deck = deck_to_model(deck_db)
    inventory = await load_inventory(session, deck.owner_id)

    proposal = proposer.propose(request.goal, inventory, deck)

    editor, catalog = await _open_editor(
        session,
        deck_db,
        [candidate.card_id for candidate in proposal.candidates],
        inventory=inventory,
    )
    known = [c for c in proposal.candidates if c.card_id in catalog]
    unknown = [
        UnfulfilledItem(
            card_name=c.card_name or str(c.card_id),
            quantity=c.quantity,
            reason=UnfulfilledReason.UNKNOWN_CARD,
            card_id=c.card_id,
            provenance=c.provenance,
        )
        for c in proposal.candidates
        if c.card_id not in catalog and c.quantity > 0
    ]
    if unknown:
        logger.warning("Proposal named %d unknown card ids", len(unknown))

    result, applied, saved = await _run_reconciliation(session, deck_db, editor, known, request)
    return ProposeResponse(
        **_reconcile_response(result, applied, saved, unknown),
        explanation=proposal.explanation,
        suggestions=list(proposal.suggestions),
    )

"""/v1/cards - card applications, settings and blocking"""

import uuid
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from infinity_bank.api.dependencies import Pagination, get_current_user, get_pagination, get_request_id
from infinity_bank.api.v1.schemas import (
    CardApplicationRequest,
    CardListResponse,
    CardResponse,
    CardStatsResponse,
    CardStatus,
    CardSummary,
    CardToggleRequest,
    CardType,
    CardUpdateRequest,
    Pagination as PaginationSchema,
)
from infinity_bank.config import settings
from infinity_bank.domain.access import ensure_owner
from infinity_bank.domain.cards import ensure_card_pending, open_card_application, toggle_card_status
from infinity_bank.domain.exceptions import (
    AccessDenied,
    DuplicateActiveCard,
    InvalidStatusTransition,
    ReferenceCollision,
    ValidationFailed,
)
from infinity_bank.domain.projections import public_card
from infinity_bank.infrastructure.database.models import Card, User
from infinity_bank.infrastructure.database.repositories import CardRepository
from infinity_bank.infrastructure.database.session import get_db
from infinity_bank.infrastructure.observability.logging import log_card_application
from infinity_bank.infrastructure.observability.metrics import card_application_counter

router = APIRouter()


@router.post("/cards", response_model=CardResponse, status_code=201)
def apply_for_card(
    body: CardApplicationRequest,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """
    Submit a card application.

    Annual fee and rewards program follow from type and category. A user may
    hold one pending, approved or active card per card type.
    """
    request_id = get_request_id(request)
    cards = CardRepository(db)

    try:
        terms = open_card_application(
            card_type=body.card_type,
            card_network=body.card_network,
            card_category=body.card_category,
            card_holder=user.username,
            pin=body.pin,
            credit_limit=body.credit_limit,
            is_contactless=body.is_contactless,
            is_international=body.is_international,
            existing_open_card=cards.find_open_card(user.id, body.card_type),
            validity_years=settings.card_validity_years,
        )
        db_card = cards.create_card(user.id, terms, cards.new_card_number(body.card_network))
        db.commit()

    except (DuplicateActiveCard, ValidationFailed) as e:
        db.rollback()
        logging.warning(f"Card application rejected: {e}", extra={"request_id": request_id, "user_id": str(user.id)})
        raise HTTPException(status_code=400, detail=str(e))

    except ReferenceCollision as e:
        db.rollback()
        logging.error(f"Card number generation failed: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=503, detail="Please retry the card application")

    except Exception as e:
        db.rollback()
        logging.error(f"Unexpected error: {e}", extra={"request_id": request_id})
        raise HTTPException(status_code=500, detail="Internal server error while submitting card application")

    card_application_counter.labels(card_type=db_card.card_type, card_network=db_card.card_network).inc()
    log_card_application(request_id, str(user.id), str(db_card.id), db_card.card_type, db_card.card_network)
    return public_card(db_card)


@router.get("/cards", response_model=CardListResponse)
def get_my_cards(
    card_type: Optional[CardType] = Query(None),
    status: Optional[CardStatus] = Query(None),
    paging: Pagination = Depends(get_pagination),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    items, total = CardRepository(db).list_for_user(
        user.id, paging.page, paging.limit, card_type=card_type, status=status
    )
    return CardListResponse(
        cards=[public_card(card) for card in items],
        pagination=PaginationSchema.build(paging.page, paging.limit, total),
    )


@router.get("/cards/stats/summary", response_model=CardStatsResponse)
def get_card_stats(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    stats = CardRepository(db).summary(user.id)
    return CardStatsResponse(
        summary=CardSummary(
            total_cards=stats["total_cards"],
            total_credit_limit=float(stats["total_credit_limit"]),
        ),
        by_type=stats["by_type"],
        by_status=stats["by_status"],
        by_network=stats["by_network"],
    )


def _owned_card(card_id: str, user: User, db: Session) -> Card:
    try:
        card_uuid = uuid.UUID(card_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid card ID format")

    card = CardRepository(db).get_by_id(card_uuid)
    if not card:
        raise HTTPException(status_code=404, detail="Card not found")
    try:
        ensure_owner(card.user_id, user.id, "card")
    except AccessDenied as e:
        raise HTTPException(status_code=403, detail=str(e))
    return card


@router.get("/cards/{card_id}", response_model=CardResponse)
def get_card(card_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return public_card(_owned_card(card_id, user, db))


@router.patch("/cards/{card_id}", response_model=CardResponse)
def update_card(
    card_id: str,
    body: CardUpdateRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    card = _owned_card(card_id, user, db)
    try:
        ensure_card_pending(card.status, "updated")
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=400, detail=str(e))

    if body.is_contactless is not None:
        card.is_contactless = body.is_contactless
    if body.is_international is not None:
        card.is_international = body.is_international
    db.commit()
    return public_card(card)


@router.patch("/cards/{card_id}/cancel", response_model=CardResponse)
def cancel_card(card_id: str, request: Request, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    card = _owned_card(card_id, user, db)
    try:
        ensure_card_pending(card.status, "cancelled")
    except InvalidStatusTransition as e:
        raise HTTPException(status_code=400, detail=str(e))

    card.status = "cancelled"
    db.commit()
    logging.info(
        "Card application cancelled",
        extra={"request_id": get_request_id(request), "user_id": str(user.id), "card_id": str(card.id)},
    )
    return public_card(card)


@router.patch("/cards/{card_id}/toggle-status", response_model=CardResponse)
def toggle_card(
    card_id: str,
    body: CardToggleRequest,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    """Block an active card or unblock a blocked one."""
    card = _owned_card(card_id, user, db)
    try:
        card.status = toggle_card_status(
            card.status,
            body.action,
            existing_open_card=CardRepository(db).find_open_card(user.id, card.card_type),
        )
    except (DuplicateActiveCard, InvalidStatusTransition) as e:
        raise HTTPException(status_code=400, detail=str(e))

    db.commit()
    logging.info(
        f"Card {body.action}ed",
        extra={"request_id": get_request_id(request), "user_id": str(user.id), "card_id": str(card.id)},
    )
    return public_card(card)

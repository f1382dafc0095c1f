"""Board aggregate loader.

Builds the ``{board, lists}`` read model sent to clients after every mutation.
Each list's card order is regenerated from the cards' own ``list_id`` and
``position`` columns on every load; nothing on the list row is trusted for it.
"""
from collections import defaultdict
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from access import load_board
from errors import NotFoundError
from models import Card, Comment, List
from schemas import BoardAggregate, BoardResponse, CardResponse, ListResponse, ListWithCards
def _card_options():
    return (
        selectinload(Card.assignees),
        selectinload(Card.labels),
        selectinload(Card.attachments),
        selectinload(Card.comments).selectinload(Comment.user),
    )
async def load_card(db: AsyncSession, card_id: int) -> CardResponse:
    card = await db.scalar(
        select(Card)
        .where(Card.id == card_id)
        .options(*_card_options())
        .execution_options(populate_existing=True)
    )
    if card is None:
        raise NotFoundError("Card not found")
    return CardResponse.model_validate(card)
async def load_board_aggregate(db: AsyncSession, board_id: int) -> BoardAggregate:
    board = await load_board(db, board_id)
    lists = (await db.scalars(
        select(List)
        .where(List.board_id == board_id)
        .order_by(List.position, List.id)
        .execution_options(populate_existing=True)
    )).all()
    cards = (await db.scalars(
        select(Card)
        .where(Card.board_id == board_id)
        .order_by(Card.list_id, Card.position, Card.id)
        .options(*_card_options())
        .execution_options(populate_existing=True)
    )).all()
    cards_by_list: dict[int, list[Card]] = defaultdict(list)
    for card in cards:
        cards_by_list[card.list_id].append(card)
    resolved = []
    for list_row in lists:
        list_cards = cards_by_list.get(list_row.id, [])
        resolved.append(ListWithCards(
            **ListResponse.model_validate(list_row).model_dump(),
            card_ids=[card.id for card in list_cards],
            cards=[CardResponse.model_validate(card) for card in list_cards],
        ))
    return BoardAggregate(board=BoardResponse.model_validate(board), lists=resolved)

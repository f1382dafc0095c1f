"""Board mutations.

Every mutation on an existing board runs through ``_run_board_mutation``:
the board's critical section is entered, access is checked against a fresh,
row-locked board, the write happens in one transaction, and the resulting
aggregate is reloaded and published before the section is released. Readers
therefore never observe a half-applied position repair, and subscribers
receive snapshots in commit order.
"""
import asyncio
import weakref
from contextlib import asynccontextmanager
from typing import Awaitable, Callable, Optional, TypeVar
import structlog
from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from access import authorize_board, load_board, require_owner
from aggregate import load_board_aggregate, load_card
from errors import ConflictError, NotFoundError, ValidationError
from models import Board, Card, CardAttachment, CardLabel, Comment, List, User, board_members_table
from ordering import Shift, next_position, plan_move, plan_removal
from realtime import Connection, manager
from schemas import (
    BoardAggregate, BoardCreate, BoardResponse, BoardUpdate, CardCreate, CardMove,
    CardResponse, CardUpdate, CommentCreate, ListCreate, ListResponse, ListUpdate,
)
logger = structlog.get_logger()
T = TypeVar("T")
class BoardLocks:
    """One ``asyncio.Lock`` per board id, dropped once nobody holds or awaits it."""
    def __init__(self):
        self._locks: "weakref.WeakValueDictionary[int, asyncio.Lock]" = weakref.WeakValueDictionary()
    @asynccontextmanager
    async def hold(self, board_id: int):
        lock = self._locks.get(board_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[board_id] = lock
        async with lock:
            yield
board_locks = BoardLocks()
async def _run_board_mutation(
    db: AsyncSession,
    user: User,
    board_id: int,
    work: Callable[[Board], Awaitable[T]],
    action: str,
    exclude: Optional[Connection] = None,
) -> tuple[T, BoardAggregate]:
    user_id = user.id
    # release any read transaction opened while resolving ids
    await db.commit()
    async with board_locks.hold(board_id):
        try:
            board = await authorize_board(db, user, board_id, for_update=True)
            result = await work(board)
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        aggregate = await load_board_aggregate(db, board_id)
        await db.commit()
        await manager.publish_board(aggregate, action, originating_user_id=user_id, exclude=exclude)
    logger.info("board_mutated", board_id=board_id, action=action, user_id=user_id)
    return result, aggregate
async def _board_of_card(db: AsyncSession, card_id: int) -> int:
    board_id = await db.scalar(select(Card.board_id).where(Card.id == card_id))
    if board_id is None:
        raise NotFoundError("Card not found")
    return board_id
async def _board_of_list(db: AsyncSession, list_id: int) -> int:
    board_id = await db.scalar(select(List.board_id).where(List.id == list_id))
    if board_id is None:
        raise NotFoundError("List not found")
    return board_id
async def _get_list(db: AsyncSession, list_id: int) -> List:
    list_item = await db.scalar(select(List).where(List.id == list_id).execution_options(populate_existing=True))
    if list_item is None:
        raise NotFoundError("List not found")
    return list_item
async def _get_card(db: AsyncSession, card_id: int, with_collections: bool = False) -> Card:
    query = select(Card).where(Card.id == card_id).execution_options(populate_existing=True)
    if with_collections:
        query = query.options(
            selectinload(Card.assignees),
            selectinload(Card.labels),
            selectinload(Card.attachments),
        )
    card = await db.scalar(query)
    if card is None:
        raise NotFoundError("Card not found")
    return card
def _expect_board(board_id: int, expected_board_id: Optional[int], message: str) -> None:
    if expected_board_id is not None and board_id != expected_board_id:
        raise ValidationError(message)
async def _apply_shift(db: AsyncSession, shift: Shift, moving_card_id: Optional[int] = None) -> None:
    conditions = [Card.list_id == shift.list_id, Card.position >= shift.low]
    if shift.high is not None:
        conditions.append(Card.position <= shift.high)
    if moving_card_id is not None:
        conditions.append(Card.id != moving_card_id)
    await db.execute(
        update(Card)
        .where(*conditions)
        .values(position=Card.position + shift.delta)
        .execution_options(synchronize_session=False)
    )
async def list_boards(db: AsyncSession, user: User) -> list[BoardResponse]:
    member_of = select(board_members_table.c.board_id).where(board_members_table.c.user_id == user.id)
    boards = (await db.scalars(
        select(Board)
        .where(or_(Board.owner_id == user.id, Board.id.in_(member_of)))
        .options(selectinload(Board.members), selectinload(Board.owner))
        .order_by(Board.updated_at.desc(), Board.id.desc())
    )).all()
    return [BoardResponse.model_validate(board) for board in boards]
async def get_board_aggregate(db: AsyncSession, user: User, board_id: int) -> BoardAggregate:
    await authorize_board(db, user, board_id)
    return await load_board_aggregate(db, board_id)
async def create_board(db: AsyncSession, user: User, data: BoardCreate) -> BoardResponse:
    board = Board(
        title=data.title,
        description=data.description or "",
        owner_id=user.id,
        members=[user],
    )
    if data.background:
        board.background = data.background
    db.add(board)
    await db.commit()
    logger.info("board_created", board_id=board.id, user_id=user.id)
    return BoardResponse.model_validate(await load_board(db, board.id))
async def update_board(db: AsyncSession, user: User, board_id: int, data: BoardUpdate) -> BoardResponse:
    async def work(board: Board) -> None:
        if data.title is not None:
            board.title = data.title
        if data.description is not None:
            board.description = data.description
        if data.background is not None:
            board.background = data.background
    _, aggregate = await _run_board_mutation(db, user, board_id, work, "board:updated")
    return aggregate.board
async def delete_board(db: AsyncSession, user: User, board_id: int) -> None:
    user_id = user.id
    await db.commit()
    async with board_locks.hold(board_id):
        try:
            board = await authorize_board(db, user, board_id, for_update=True)
            require_owner(user, board)
            await db.execute(delete(Card).where(Card.board_id == board_id))
            await db.execute(delete(List).where(List.board_id == board_id))
            await db.execute(delete(board_members_table).where(board_members_table.c.board_id == board_id))
            await db.execute(delete(Board).where(Board.id == board.id))
            await db.commit()
        except Exception:
            await db.rollback()
            raise
        manager.drop_board(board_id)
    logger.info("board_deleted", board_id=board_id, user_id=user_id)
async def add_member(db: AsyncSession, user: User, board_id: int, email: str) -> BoardResponse:
    async def work(board: Board) -> int:
        invitee = await db.scalar(select(User).where(func.lower(User.email) == email.lower()))
        if invitee is None:
            raise NotFoundError("User not found")
        if board.owner_id == invitee.id or board.has_member(invitee.id):
            raise ConflictError("User is already a member of this board")
        board.members.append(invitee)
        return invitee.id
    _, aggregate = await _run_board_mutation(db, user, board_id, work, "member:added")
    return aggregate.board
async def create_list(
    db: AsyncSession,
    user: User,
    board_id: int,
    data: ListCreate,
    exclude: Optional[Connection] = None,
) -> ListResponse:
    async def work(board: Board) -> int:
        last = await db.scalar(select(func.max(List.position)).where(List.board_id == board.id))
        list_item = List(title=data.title, board_id=board.id, position=next_position([last]))
        db.add(list_item)
        await db.flush()
        return list_item.id
    list_id, aggregate = await _run_board_mutation(db, user, board_id, work, "list:created", exclude=exclude)
    return next(ListResponse.model_validate(item.model_dump()) for item in aggregate.lists if item.id == list_id)
async def update_list(db: AsyncSession, user: User, list_id: int, data: ListUpdate) -> ListResponse:
    board_id = await _board_of_list(db, list_id)
    async def work(board: Board) -> None:
        list_item = await _get_list(db, list_id)
        list_item.title = data.title
    _, aggregate = await _run_board_mutation(db, user, board_id, work, "list:updated")
    return next(ListResponse.model_validate(item.model_dump()) for item in aggregate.lists if item.id == list_id)
async def delete_list(db: AsyncSession, user: User, list_id: int) -> None:
    board_id = await _board_of_list(db, list_id)
    async def work(board: Board) -> None:
        list_item = await _get_list(db, list_id)
        # sibling lists keep their positions; only relative order is used
        await db.execute(delete(Card).where(Card.list_id == list_item.id))
        await db.delete(list_item)
    await _run_board_mutation(db, user, board_id, work, "list:deleted")
async def create_card(
    db: AsyncSession,
    user: User,
    list_id: int,
    data: CardCreate,
    expected_board_id: Optional[int] = None,
    exclude: Optional[Connection] = None,
) -> CardResponse:
    board_id = await _board_of_list(db, list_id)
    _expect_board(board_id, expected_board_id, "Invalid list")
    async def work(board: Board) -> int:
        list_item = await _get_list(db, list_id)
        last = await db.scalar(select(func.max(Card.position)).where(Card.list_id == list_item.id))
        card = Card(
            title=data.title,
            description=data.description or "",
            list_id=list_item.id,
            board_id=board.id,
            position=next_position([last]),
        )
        db.add(card)
        await db.flush()
        return card.id
    card_id, _ = await _run_board_mutation(db, user, board_id, work, "card:created", exclude=exclude)
    return await load_card(db, card_id)
async def update_card(db: AsyncSession, user: User, card_id: int, data: CardUpdate) -> CardResponse:
    board_id = await _board_of_card(db, card_id)
    fields = data.model_dump(exclude_unset=True)
    async def work(board: Board) -> None:
        card = await _get_card(db, card_id, with_collections=True)
        if data.title is not None:
            card.title = data.title
        if data.description is not None:
            card.description = data.description
        if "due_date" in fields:
            card.due_date = data.due_date
        if data.assignees is not None:
            members = {member.id: member for member in board.members}
            unknown = [user_id for user_id in data.assignees if user_id not in members]
            if unknown:
                raise ValidationError(f"Assignees must be board members: {unknown}")
            card.assignees = [members[user_id] for user_id in dict.fromkeys(data.assignees)]
        if data.labels is not None:
            card.labels = [CardLabel(name=label.name, color=label.color) for label in data.labels]
        if data.attachments is not None:
            card.attachments = [CardAttachment(filename=item.filename, url=item.url) for item in data.attachments]
    await _run_board_mutation(db, user, board_id, work, "card:updated")
    return await load_card(db, card_id)
async def delete_card(db: AsyncSession, user: User, card_id: int) -> None:
    board_id = await _board_of_card(db, card_id)
    async def work(board: Board) -> None:
        card = await _get_card(db, card_id)
        list_id, position = card.list_id, card.position
        await db.execute(delete(Card).where(Card.id == card.id))
        await _apply_shift(db, plan_removal(list_id, position))
    await _run_board_mutation(db, user, board_id, work, "card:deleted")
async def move_card(
    db: AsyncSession,
    user: User,
    data: CardMove,
    expected_board_id: Optional[int] = None,
    exclude: Optional[Connection] = None,
) -> BoardAggregate:
    board_id = await _board_of_card(db, data.card_id)
    _expect_board(board_id, expected_board_id, "Invalid card")
    async def work(board: Board) -> None:
        card = await _get_card(db, data.card_id)
        if card.list_id != data.source_list_id:
            raise ValidationError("Card is not in the source list")
        destination = await _get_list(db, data.destination_list_id)
        if destination.board_id != card.board_id:
            raise ValidationError("Destination list belongs to another board")
        destination_size = await db.scalar(
            select(func.count()).select_from(Card).where(Card.list_id == destination.id)
        )
        plan = plan_move(
            card.id,
            card.position,
            card.list_id,
            destination.id,
            data.new_position,
            destination_size,
        )
        if plan.is_noop:
            return
        for shift in plan.shifts:
            await _apply_shift(db, shift, moving_card_id=card.id)
        card.list_id = plan.destination_list_id
        card.position = plan.new_position
        await db.flush()
        logger.debug("card_move_planned", card_id=card.id, old=plan.old_position, new=plan.new_position, crosses_lists=plan.crosses_lists)
    _, aggregate = await _run_board_mutation(db, user, board_id, work, "card:moved", exclude=exclude)
    return aggregate
async def add_comment(db: AsyncSession, user: User, card_id: int, data: CommentCreate) -> CardResponse:
    board_id = await _board_of_card(db, card_id)
    user_id = user.id
    async def work(board: Board) -> None:
        card = await _get_card(db, card_id)
        db.add(Comment(card_id=card.id, user_id=user_id, text=data.text))
        await db.flush()
    await _run_board_mutation(db, user, board_id, work, "comment:added")
    return await load_card(db, card_id)

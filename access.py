"""Board access gate: a caller may act on a board when they own it or are a member."""
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload
from errors import AuthorizationError, NotFoundError
from models import Board, User
def can_access_board(user: User, board: Board) -> bool:
    return user.id == board.owner_id or board.has_member(user.id)
async def load_board(db: AsyncSession, board_id: int, for_update: bool = False) -> Board:
    query = (
        select(Board)
        .where(Board.id == board_id)
        .options(selectinload(Board.members), selectinload(Board.owner))
        .execution_options(populate_existing=True)
    )
    if for_update:
        query = query.with_for_update(of=Board)
    board = await db.scalar(query)
    if board is None:
        raise NotFoundError("Board not found")
    return board
async def authorize_board(db: AsyncSession, user: User, board_id: int, for_update: bool = False) -> Board:
    board = await load_board(db, board_id, for_update=for_update)
    if not can_access_board(user, board):
        raise AuthorizationError("Access denied")
    return board
def require_owner(user: User, board: Board) -> None:
    if board.owner_id != user.id:
        raise AuthorizationError("Only the owner can delete this board")

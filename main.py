from fastapi import FastAPI, Depends, Request, WebSocket, WebSocketDisconnect, status, Query
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from contextlib import asynccontextmanager
from typing import Optional, List
import json
import pydantic
import structlog
import services
from config import configure_logging, get_settings
from database import dispose_db, get_db, init_db, session_factory
from access import authorize_board
from errors import AuthenticationError, BoardError, InternalError, ValidationError
from middleware.auth import bearer_from_header, get_current_user, resolve_user
from middleware.cors import setup_cors
from models import User
from realtime import Connection, manager
from schemas import (
    BoardAggregate, BoardCreate, BoardMemberAdd, BoardResponse, BoardUpdate,
    CardCreate, CardMove, CardResponse, CardUpdate, CommentCreate, JoinBoard,
    ListCreate, ListDeleted, ListResponse, ListUpdate, MessageResponse, SocketCardCreate,
)
logger = structlog.get_logger()
@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging(get_settings().log_level)
    await init_db()
    logger.info("startup_complete")
    yield
    await dispose_db()
app = FastAPI(title=get_settings().app_name, debug=get_settings().debug, version="1.0.0", lifespan=lifespan)
setup_cors(app)
def _format_validation_errors(errors) -> list[dict]:
    return [
        {"field": ".".join(str(part) for part in error.get("loc", ()) if part != "body"), "message": error.get("msg", "")}
        for error in errors
    ]
@app.exception_handler(BoardError)
async def board_error_handler(request: Request, exc: BoardError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message}, headers=headers)
@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(status_code=exc.status_code, content={"message": str(exc.detail)}, headers=getattr(exc, "headers", None))
@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    errors = _format_validation_errors(exc.errors())
    message = "; ".join(f"{e['field']}: {e['message']}" if e["field"] else e["message"] for e in errors)
    return JSONResponse(status_code=400, content={"message": message or "Invalid input", "errors": errors})
@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception):
    logger.exception("unhandled_error", path=request.url.path)
    return await board_error_handler(request, InternalError())
@app.get("/health")
async def health():
    return {"status": "ok"}
@app.get("/boards", response_model=List[BoardResponse])
async def get_user_boards(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await services.list_boards(db, current_user)
@app.post("/boards", response_model=BoardResponse, status_code=status.HTTP_201_CREATED)
async def create_board(
    board: BoardCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await services.create_board(db, current_user, board)
@app.get("/boards/{board_id}", response_model=BoardAggregate)
async def get_board(
    board_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await services.get_board_aggregate(db, current_user, board_id)
@app.put("/boards/{board_id}", response_model=BoardResponse)
async def update_board(
    board_id: int,
    board_update: BoardUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await services.update_board(db, current_user, board_id, board_update)
@app.delete("/boards/{board_id}", response_model=MessageResponse)
async def delete_board(
    board_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await services.delete_board(db, current_user, board_id)
    return {"message": "Board deleted successfully"}
@app.post("/boards/{board_id}/members", response_model=BoardResponse)
async def add_board_member(
    board_id: int,
    member_data: BoardMemberAdd,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await services.add_member(db, current_user, board_id, member_data.email)
@app.post("/boards/{board_id}/lists", response_model=ListResponse, status_code=status.HTTP_201_CREATED)
async def create_list(
    board_id: int,
    list_data: ListCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await services.create_list(db, current_user, board_id, list_data)
@app.put("/lists/{list_id}", response_model=ListResponse)
async def update_list(
    list_id: int,
    list_update: ListUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await services.update_list(db, current_user, list_id, list_update)
@app.delete("/lists/{list_id}", response_model=ListDeleted)
async def delete_list(
    list_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await services.delete_list(db, current_user, list_id)
    return {"message": "List deleted successfully", "list_id": list_id}
@app.post("/lists/{list_id}/cards", response_model=CardResponse, status_code=status.HTTP_201_CREATED)
async def create_card(
    list_id: int,
    card_data: CardCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await services.create_card(db, current_user, list_id, card_data)
@app.post("/cards/move", response_model=BoardAggregate)
async def move_card(
    move_data: CardMove,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await services.move_card(db, current_user, move_data)
@app.put("/cards/{card_id}", response_model=CardResponse)
async def update_card(
    card_id: int,
    card_update: CardUpdate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await services.update_card(db, current_user, card_id, card_update)
@app.delete("/cards/{card_id}", response_model=MessageResponse)
async def delete_card(
    card_id: int,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    await services.delete_card(db, current_user, card_id)
    return {"message": "Card deleted"}
@app.post("/cards/{card_id}/comments", response_model=CardResponse)
async def create_comment(
    card_id: int,
    comment_data: CommentCreate,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await services.add_comment(db, current_user, card_id, comment_data)
async def _load_socket_user(db: AsyncSession, connection: Connection) -> User:
    user = await db.scalar(select(User).where(User.id == connection.user_id))
    if user is None:
        raise AuthenticationError("User not found")
    return user
def _joined_board(connection: Connection) -> int:
    if connection.current_board is None:
        raise ValidationError("Not in a board")
    return connection.current_board
async def on_join_board(connection: Connection, db: AsyncSession, data) -> None:
    payload = JoinBoard.model_validate(data if isinstance(data, dict) else {"board_id": data})
    user = await _load_socket_user(db, connection)
    board = await authorize_board(db, user, payload.board_id)
    manager.join(connection, board.id)
    await connection.emit("board:joined", {"board_id": board.id})
    logger.info("board_joined", board_id=board.id, username=connection.username)
async def on_card_move(connection: Connection, db: AsyncSession, data) -> None:
    board_id = _joined_board(connection)
    payload = CardMove.model_validate(data)
    user = await _load_socket_user(db, connection)
    # the mover already shows the new order; everyone else gets the snapshot
    await services.move_card(db, user, payload, expected_board_id=board_id, exclude=connection)
async def on_card_create(connection: Connection, db: AsyncSession, data) -> None:
    board_id = _joined_board(connection)
    payload = SocketCardCreate.model_validate(data)
    user = await _load_socket_user(db, connection)
    await services.create_card(db, user, payload.list_id, payload, expected_board_id=board_id)
async def on_list_create(connection: Connection, db: AsyncSession, data) -> None:
    board_id = _joined_board(connection)
    payload = ListCreate.model_validate(data)
    user = await _load_socket_user(db, connection)
    await services.create_list(db, user, board_id, payload)
SOCKET_EVENTS = {
    "join-board": on_join_board,
    "card:move": on_card_move,
    "card:create": on_card_create,
    "list:create": on_list_create,
}
async def handle_socket_message(connection: Connection, raw: str) -> None:
    try:
        message = json.loads(raw)
    except json.JSONDecodeError:
        await connection.emit("error", {"message": "Malformed message"})
        return
    if not isinstance(message, dict):
        await connection.emit("error", {"message": "Malformed message"})
        return
    handler = SOCKET_EVENTS.get(message.get("event"))
    if handler is None:
        await connection.emit("error", {"message": f"Unknown event: {message.get('event')}"})
        return
    try:
        async with session_factory()() as db:
            await handler(connection, db, message.get("data") or {})
    except BoardError as exc:
        await connection.emit("error", {"message": exc.message})
    except pydantic.ValidationError as exc:
        errors = _format_validation_errors(exc.errors())
        await connection.emit("error", {"message": "; ".join(f"{e['field']}: {e['message']}" for e in errors)})
    except Exception:
        logger.exception("socket_event_failed", socket_event=message.get("event"), user_id=connection.user_id)
        await connection.emit("error", {"message": InternalError.default_message})
@app.websocket("/ws")
async def websocket_endpoint(
    websocket: WebSocket,
    token: Optional[str] = Query(None)
):
    token = token or bearer_from_header(websocket.headers.get("authorization"))
    try:
        async with session_factory()() as db:
            user = await resolve_user(token, db)
            connection = Connection(websocket, user.id, user.username)
    except AuthenticationError as exc:
        logger.info("socket_rejected", reason=exc.message)
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return
    await websocket.accept()
    logger.info("socket_connected", username=connection.username)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            if message.get("text") is None:
                await connection.emit("error", {"message": "Binary frames are not supported"})
                continue
            await handle_socket_message(connection, message["text"])
    except WebSocketDisconnect as exc:
        logger.debug("socket_send_interrupted", username=connection.username, code=exc.code)
    finally:
        manager.disconnect(connection)
        logger.info("socket_disconnected", username=connection.username)

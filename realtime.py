import asyncio
from typing import Any, Optional
from fastapi import WebSocket, status
import structlog
from config import get_settings
from schemas import BoardAggregate
logger = structlog.get_logger()
class Connection:
    def __init__(self, websocket: WebSocket, user_id: int, username: str):
        self.websocket = websocket
        self.user_id = user_id
        self.username = username
        self.current_board: Optional[int] = None
    async def emit(self, event: str, data: Any) -> None:
        await self.websocket.send_json({"event": event, "data": data})
class ConnectionManager:
    """Board channels: every connection joined to a board receives its updates.

    Joining another board does not leave the previous ones; ``current_board``
    only tracks which board incoming mutation events apply to. Each send is
    bounded by ``send_timeout``; a subscriber that fails or stalls is closed
    so its client reconnects and joins again.
    """
    def __init__(self, send_timeout: float = 5.0):
        self.active_connections: dict[int, set[Connection]] = {}
        self.send_timeout = send_timeout
    def join(self, connection: Connection, board_id: int) -> None:
        self.active_connections.setdefault(board_id, set()).add(connection)
        connection.current_board = board_id
    def disconnect(self, connection: Connection) -> None:
        for board_id in list(self.active_connections):
            subscribers = self.active_connections[board_id]
            subscribers.discard(connection)
            if not subscribers:
                del self.active_connections[board_id]
    def drop_board(self, board_id: int) -> None:
        for connection in self.active_connections.pop(board_id, set()):
            if connection.current_board == board_id:
                connection.current_board = None
    def subscribers(self, board_id: int) -> list[Connection]:
        return list(self.active_connections.get(board_id, ()))
    async def close(self, connection: Connection) -> None:
        self.disconnect(connection)
        connection.current_board = None
        try:
            await asyncio.wait_for(
                connection.websocket.close(code=status.WS_1011_INTERNAL_ERROR),
                timeout=self.send_timeout,
            )
        except Exception as exc:
            logger.debug("socket_close_failed", user_id=connection.user_id, error=type(exc).__name__)
    async def _deliver(self, board_id: int, connection: Connection, event: str, data: Any) -> bool:
        try:
            await asyncio.wait_for(connection.emit(event, data), timeout=self.send_timeout)
            return True
        except Exception as exc:
            logger.warning("broadcast_send_failed", board_id=board_id, user_id=connection.user_id, error=str(exc) or type(exc).__name__)
            await self.close(connection)
            return False
    async def broadcast(self, board_id: int, event: str, data: Any, exclude: Optional[Connection] = None) -> int:
        targets = [connection for connection in self.subscribers(board_id) if connection is not exclude]
        results = await asyncio.gather(*(self._deliver(board_id, connection, event, data) for connection in targets))
        return sum(results)
    async def publish_board(
        self,
        aggregate: BoardAggregate,
        action: str,
        originating_user_id: Optional[int] = None,
        exclude: Optional[Connection] = None,
    ) -> int:
        payload = aggregate.model_dump(mode="json")
        payload["action"] = action
        payload["originating_user_id"] = originating_user_id
        delivered = await self.broadcast(aggregate.board.id, "board:update", payload, exclude=exclude)
        logger.debug("board_update_published", board_id=aggregate.board.id, action=action, delivered=delivered)
        return delivered
manager = ConnectionManager(send_timeout=get_settings().broadcast_send_timeout)

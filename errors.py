"""Error taxonomy shared by the HTTP routes and the WebSocket channel."""
class BoardError(Exception):
    status_code = 500
    default_message = "Server error"
    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)
class ValidationError(BoardError):
    status_code = 400
    default_message = "Invalid input"
class AuthenticationError(BoardError):
    status_code = 401
    default_message = "Could not validate credentials"
class AuthorizationError(BoardError):
    status_code = 403
    default_message = "Access denied"
class NotFoundError(BoardError):
    status_code = 404
    default_message = "Not found"
class ConflictError(BoardError):
    status_code = 409
    default_message = "Conflict"
class InternalError(BoardError):
    status_code = 500

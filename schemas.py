from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, constr
from datetime import datetime
BoardTitle = constr(strip_whitespace=True, min_length=1, max_length=100)
ListTitle = constr(strip_whitespace=True, min_length=1, max_length=100)
CardTitle = constr(strip_whitespace=True, min_length=1, max_length=200)
CommentText = constr(strip_whitespace=True, min_length=1, max_length=1000)
class UserSummary(BaseModel):
    id: int
    username: str
    avatar: Optional[str] = None
    model_config = ConfigDict(from_attributes=True)
class BoardCreate(BaseModel):
    title: BoardTitle
    description: Optional[constr(strip_whitespace=True, max_length=500)] = None
    background: Optional[constr(strip_whitespace=True, min_length=1, max_length=32)] = None
class BoardUpdate(BaseModel):
    title: Optional[BoardTitle] = None
    description: Optional[constr(strip_whitespace=True, max_length=500)] = None
    background: Optional[constr(strip_whitespace=True, min_length=1, max_length=32)] = None
class BoardResponse(BaseModel):
    id: int
    title: str
    description: str
    background: str
    owner: UserSummary
    members: list[UserSummary] = []
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)
class BoardMemberAdd(BaseModel):
    email: constr(strip_whitespace=True, to_lower=True, min_length=3, max_length=255, pattern=r"^[^@\s]+@[^@\s]+$")
class ListCreate(BaseModel):
    title: ListTitle
class ListUpdate(BaseModel):
    title: ListTitle
class ListResponse(BaseModel):
    id: int
    title: str
    position: int
    board_id: int
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)
class LabelSchema(BaseModel):
    name: constr(strip_whitespace=True, max_length=50) = ""
    color: constr(strip_whitespace=True, min_length=1, max_length=32)
    model_config = ConfigDict(from_attributes=True)
class AttachmentCreate(BaseModel):
    filename: constr(strip_whitespace=True, min_length=1, max_length=255)
    url: constr(strip_whitespace=True, min_length=1, max_length=1000)
class AttachmentResponse(AttachmentCreate):
    uploaded_at: datetime
    model_config = ConfigDict(from_attributes=True)
class CommentCreate(BaseModel):
    text: CommentText
class CommentResponse(BaseModel):
    id: int
    text: str
    user: Optional[UserSummary] = None
    created_at: datetime
    model_config = ConfigDict(from_attributes=True)
class CardCreate(BaseModel):
    title: CardTitle
    description: Optional[constr(strip_whitespace=True, max_length=2000)] = None
class SocketCardCreate(CardCreate):
    list_id: int
class CardUpdate(BaseModel):
    title: Optional[CardTitle] = None
    description: Optional[constr(strip_whitespace=True, max_length=2000)] = None
    due_date: Optional[datetime] = None
    assignees: Optional[list[int]] = None
    labels: Optional[list[LabelSchema]] = None
    attachments: Optional[list[AttachmentCreate]] = None
class CardMove(BaseModel):
    card_id: int
    source_list_id: int
    destination_list_id: int
    new_position: int = Field(ge=0)
class CardResponse(BaseModel):
    id: int
    title: str
    description: str
    position: int
    list_id: int
    board_id: int
    due_date: Optional[datetime] = None
    assignees: list[UserSummary] = []
    labels: list[LabelSchema] = []
    comments: list[CommentResponse] = []
    attachments: list[AttachmentResponse] = []
    created_at: datetime
    updated_at: datetime
    model_config = ConfigDict(from_attributes=True)
class ListWithCards(ListResponse):
    card_ids: list[int] = []
    cards: list[CardResponse] = []
class BoardAggregate(BaseModel):
    board: BoardResponse
    lists: list[ListWithCards]
class JoinBoard(BaseModel):
    board_id: int
class MessageResponse(BaseModel):
    message: str
class ListDeleted(MessageResponse):
    list_id: int

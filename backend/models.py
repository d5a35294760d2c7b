from datetime import date, datetime
from typing import Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field

Status = Literal["pending", "in-progress", "completed", "cancelled"]
Priority = Literal["low", "medium", "high", "urgent"]

STATUSES: tuple[str, ...] = ("pending", "in-progress", "completed", "cancelled")
PRIORITIES: tuple[str, ...] = ("low", "medium", "high", "urgent")
TERMINAL_STATUSES = frozenset({"completed", "cancelled"})

# Higher rank sorts first
PRIORITY_RANK = {"urgent": 4, "high": 3, "medium": 2, "low": 1}

DueDate = Union[datetime, date]  # date-only when no time of day was given


class Task(BaseModel):
    id: str
    owner_id: str
    title: str
    description: Optional[str] = None
    status: Status = "pending"
    priority: Priority = "medium"
    due_date: Optional[DueDate] = None
    reminder_times: list[datetime] = []
    created_at: datetime
    updated_at: datetime

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES


class TaskCreate(BaseModel):
    title: str = Field(min_length=1)
    description: Optional[str] = None
    priority: Priority = "medium"
    due_date: Optional[DueDate] = None
    reminder_times: list[datetime] = []


class TaskUpdate(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    status: Optional[Status] = None
    priority: Optional[Priority] = None
    due_date: Optional[str] = None  # resolved through temporal.resolve
    reminder_times: Optional[list[str]] = None


class ChatRequest(BaseModel):
    message: str
    user_id: str = "test-user"


class A2ARequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_id: str = Field(alias="messageId", min_length=1)
    user_id: str = Field(alias="userId", min_length=1)
    channel_id: Optional[str] = Field(default=None, alias="channelId")
    content: str = Field(min_length=1)
    timestamp: Optional[str] = None


class A2AResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    message_id: str = Field(alias="messageId")
    content: str
    timestamp: str
    metadata: dict[str, Any] = {}

from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class Action(str, Enum):
    """User-triggered operations a view may offer on a document."""
    SAVE = "save"
    CONFIRM = "confirm"
    REVISE = "revise"
    ARCHIVE = "archive"
    CANCEL = "cancel"
    PAY = "pay"
    CANCEL_REQUEST = "cancel_request"


class AvailableAction(BaseModel):
    """One entry of the action bar rendered for a document."""
    model_config = ConfigDict(frozen=True)

    action: Action
    label: str
    requires_confirmation: bool
    confirmation_title: str
    confirmation_copy: str
    target_status: Optional[str] = None     # status written on success, if any

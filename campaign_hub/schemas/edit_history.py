from pydantic import BaseModel
from datetime import datetime
from typing import Any, List


class FieldChange(BaseModel):
    field: str
    old_value: Any = None
    new_value: Any = None


class EditorInfo(BaseModel):
    id: str
    name: str


class EditHistoryEntryResponse(BaseModel):
    """One audit record; ``changes`` keeps the order fields were compared in"""
    id: str
    campaign_id: str
    edited_by: EditorInfo
    edited_at: datetime
    changes: List[FieldChange]

# schemas.py

from typing import Any, Dict, List, Optional, Union
from pydantic import BaseModel, Field


class SetItemRequest(BaseModel):
    key: str = Field(..., min_length=1, description="Dot-separated key path")
    value: Any


class ItemResponse(BaseModel):
    key: str
    value: Any


class AmountRequest(BaseModel):
    key: str = Field(..., min_length=1)
    amount: Union[int, float]


class ElementRequest(BaseModel):
    key: str = Field(..., min_length=1)
    element: Any


class SetPriorityRequest(BaseModel):
    key: str = Field(..., min_length=1)
    value: Any
    index: int = Field(..., ge=1, description="1-based list position")


class DeletePriorityRequest(BaseModel):
    key: str = Field(..., min_length=1)
    index: int = Field(..., ge=1, description="1-based list position")


class FindRequest(BaseModel):
    query: Dict[str, Any] = Field(default_factory=dict)
    key: Optional[str] = Field(default=None, description="Search inside this value instead of the root")
    sort: Optional[Dict[str, Any]] = None
    projection: Optional[Dict[str, bool]] = None
    skip: int = Field(default=0, ge=0)
    limit: Optional[int] = Field(default=None, ge=0)


class FindResponse(BaseModel):
    results: List[Any]


class InfoResponse(BaseModel):
    adapter: str
    transactions: bool
    sessions: bool
    language: str

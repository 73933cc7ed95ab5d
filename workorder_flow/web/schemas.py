from __future__ import annotations

from datetime import datetime
from typing import List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field


class RoutingStepIn(BaseModel):
    sector: str


class CreateOrderRequest(BaseModel):
    order_number: str
    part_name: str
    part_number: str
    quantity: int
    routing: List[Union[RoutingStepIn, str]] = Field(min_length=1)
    note: str = ""
    priority: Union[int, str] = 2
    status: Optional[str] = None
    current_sector: Optional[str] = None
    created_at: Optional[datetime] = None

    def sectors(self) -> List[str]:
        return [step.sector if isinstance(step, RoutingStepIn) else step for step in self.routing]


class ProductionReportRequest(BaseModel):
    quantity: int
    defective_quantity: int
    operator_name: str


class ValidationDecisionRequest(BaseModel):
    approved: bool


class PatchOrderRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    order_number: Optional[str] = None
    part_name: Optional[str] = None
    part_number: Optional[str] = None
    quantity: Optional[int] = None
    note: Optional[str] = None
    priority: Optional[Union[int, str]] = None
    status: Optional[str] = None
    current_sector: Optional[str] = None


class CreateLogRequest(BaseModel):
    order_number: Optional[str] = None
    sector: Optional[str] = None
    description: Optional[str] = None
    date: Optional[Union[int, float, str]] = None


class RenameLogsRequest(BaseModel):
    old_order_number: Optional[str] = None
    new_order_number: Optional[str] = None

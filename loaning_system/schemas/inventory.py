from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class InventoryItemCreate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    item_id: Optional[int] = Field(default=None, alias="itemId")
    item_name: str = Field(alias="itemName")
    total_qty: int = Field(alias="totalQty", ge=0)
    brand: Optional[str] = None
    model: Optional[str] = None
    size: Optional[str] = None
    category: Optional[str] = None
    is_loanable: bool = Field(default=True, alias="isLoanable")
    requires_approval: bool = Field(default=False, alias="requiresApproval")


class InventoryItemUpdate(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    item_name: Optional[str] = Field(default=None, alias="itemName")
    total_qty: Optional[int] = Field(default=None, alias="totalQty", ge=0)
    brand: Optional[str] = None
    model: Optional[str] = None
    size: Optional[str] = None
    category: Optional[str] = None
    is_loanable: Optional[bool] = Field(default=None, alias="isLoanable")
    requires_approval: Optional[bool] = Field(default=None, alias="requiresApproval")

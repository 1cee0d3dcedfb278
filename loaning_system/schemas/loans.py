from pydantic import BaseModel, ConfigDict, Field


class LedgerAdjustmentRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    itemId: int = Field(alias="item_id")
    studentId: int = Field(alias="student_id")
    quantity: int = Field(gt=0)


class BorrowRequestDto(LedgerAdjustmentRequest):
    purpose: str | None = None


class ReturnRequestDto(LedgerAdjustmentRequest):
    pass

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class ContactDto(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    email: str = Field(min_length=3)
    fullName: Optional[str] = Field(default=None, alias="full_name")
    phone: Optional[str] = None


class StudentContactDto(ContactDto):
    matricNo: Optional[str] = Field(default=None, alias="matric_no")


class SupervisorContactDto(ContactDto):
    staffNo: Optional[str] = Field(default=None, alias="staff_no")
    department: Optional[str] = None


class FormItemLineDto(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    itemId: int = Field(alias="item_id")
    quantity: int = Field(default=1, gt=0)


class BorrowFormSubmission(BaseModel):
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    student: StudentContactDto
    supervisor: Optional[SupervisorContactDto] = None
    purpose: Optional[str] = None
    items: List[FormItemLineDto] = Field(min_length=1)

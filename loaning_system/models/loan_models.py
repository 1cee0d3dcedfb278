from sqlalchemy import Boolean, Column, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from db.base import Base


class Item(Base):
    __tablename__ = "hub_inv"

    item_id = Column(Integer, primary_key=True)
    item_name = Column(String(255))
    brand = Column(String(255))
    model = Column(String(255))
    size = Column(String(100))
    category = Column(String(100))
    total_qty = Column(Integer)
    qty_available = Column(Integer)
    qty_reserved = Column(Integer)
    qty_borrowed = Column(Integer)
    is_loanable = Column(Boolean, default=True)
    requires_approval = Column(Boolean, default=False)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now())

    BorrowRequests = relationship("BorrowRequest", back_populates="Item")


class Student(Base):
    __tablename__ = "students"

    student_id = Column(Integer, primary_key=True)
    email = Column(String(255), nullable=False, unique=True)
    matric_no = Column(String(50))
    full_name = Column(String(255))
    phone = Column(String(50))
    created_at = Column(DateTime, server_default=func.now())

    BorrowRequests = relationship("BorrowRequest", back_populates="Student")


class Supervisor(Base):
    __tablename__ = "supervisors"

    supervisor_id = Column(Integer, primary_key=True)
    email = Column(String(255), nullable=False, unique=True)
    staff_no = Column(String(50))
    full_name = Column(String(255))
    department = Column(String(255))
    created_at = Column(DateTime, server_default=func.now())


class BorrowRequest(Base):
    __tablename__ = "borrow_requests"

    request_id = Column(Integer, primary_key=True)
    student_id = Column(Integer, ForeignKey("students.student_id"), nullable=False)
    supervisor_id = Column(Integer, ForeignKey("supervisors.supervisor_id"))
    item_id = Column(Integer, ForeignKey("hub_inv.item_id"), nullable=False)
    quantity = Column(Integer, nullable=False)
    status = Column(String(20), default="Pending")
    purpose = Column(String(1000))
    created_at = Column(DateTime, server_default=func.now())

    Item = relationship("Item", back_populates="BorrowRequests")
    Student = relationship("Student", back_populates="BorrowRequests")
    Supervisor = relationship("Supervisor")
    BorrowedItems = relationship("BorrowedItem", back_populates="BorrowRequest", cascade="all, delete-orphan")


class BorrowedItem(Base):
    __tablename__ = "borrowed_items"

    borrowed_item_id = Column(Integer, primary_key=True)
    request_id = Column(Integer, ForeignKey("borrow_requests.request_id"), nullable=False)
    student_id = Column(Integer, ForeignKey("students.student_id"), nullable=False)
    item_id = Column(Integer, ForeignKey("hub_inv.item_id"), nullable=False)
    quantity_borrowed = Column(Integer, nullable=False)
    quantity_returned = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime, server_default=func.now())
    updated_at = Column(DateTime, server_default=func.now())

    BorrowRequest = relationship("BorrowRequest", back_populates="BorrowedItems")


class FormSubmission(Base):
    __tablename__ = "form_submissions"

    submission_id = Column(Integer, primary_key=True)
    source = Column(String(100))
    payload = Column(Text)
    forwarded = Column(Boolean, default=False)
    created_at = Column(DateTime, server_default=func.now())

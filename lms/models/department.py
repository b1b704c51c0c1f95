from sqlmodel import SQLModel, Field
from sqlalchemy import Column, Integer, String, ForeignKey, Uuid
from typing import Optional
import uuid


class Department(SQLModel, table=True):
    __tablename__ = "departments"

    # Primary Key must be ONLY inside sa_column
    id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, primary_key=True, autoincrement=True)
    )

    name: str = Field(
        sa_column=Column(String(128), nullable=False, unique=True)
    )

    code: str = Field(
        sa_column=Column(String(32), nullable=False, unique=True)
    )

    school_id: int = Field(
        sa_column=Column(Integer, ForeignKey("schools.id"), nullable=False)
    )

    # users.id is created after departments, so the FK is added later
    hod_id: Optional[uuid.UUID] = Field(
        default=None,
        sa_column=Column(Uuid, ForeignKey("users.id", use_alter=True), nullable=True)
    )

from typing import Optional
import uuid

from sqlmodel import SQLModel, Field
from sqlalchemy import Column, Integer, String, ForeignKey, Uuid


class School(SQLModel, table=True):
    __tablename__ = "schools"

    id: Optional[int] = Field(
        default=None,
        sa_column=Column(Integer, primary_key=True, autoincrement=True)
    )

    name: str = Field(
        sa_column=Column(String, nullable=False, unique=True)
    )

    code: str = Field(
        sa_column=Column(String, unique=True, nullable=False)
    )

    dean_id: Optional[uuid.UUID] = Field(
        default=None,
        sa_column=Column(Uuid, ForeignKey("users.id", use_alter=True), nullable=True)
    )

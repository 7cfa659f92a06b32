"""Shared base for domain entities"""

from sqlalchemy import BigInteger, Integer
from sqlmodel import SQLModel


# SQLite only auto-increments INTEGER PRIMARY KEY columns
IdType = BigInteger().with_variant(Integer(), "sqlite")
MAX_ID = 2**63 - 1


class BaseModel(SQLModel):
    pass

"""Database tables for the SQL state store.

Each row holds one record serialized as JSON in `value`, keyed by id.
"""

from sqlalchemy import Column, Text
from sqlmodel import Field, SQLModel


class ServiceInstanceRow(SQLModel, table=True):
    __tablename__ = "service_instances"

    id: str = Field(primary_key=True, max_length=255)
    value: str = Field(sa_column=Column(Text, nullable=False))


class ServiceBindingRow(SQLModel, table=True):
    __tablename__ = "service_bindings"

    id: str = Field(primary_key=True, max_length=255)
    value: str = Field(sa_column=Column(Text, nullable=False))

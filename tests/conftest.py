"""Shared pytest fixtures: sample graph entities."""

from enum import Enum
from typing import ClassVar
from uuid import UUID

import pytest
from pydantic import Field

from neoquery.domain.entity import NodeEntity, RelationEntity
from neoquery.query_builder import QueryBuilder


class Role(str, Enum):
    OWNER = "owner"
    MEMBER = "member"


class Page(NodeEntity):
    id: str
    path: str = "/"


class Component(NodeEntity):
    id: str
    name: str = ""


class HasComponent(RelationEntity):
    position: int = 0


class User(NodeEntity):
    id: str
    name: str = ""
    email: str | None = None
    session_token: str = Field(default="", exclude=True)


class Group(NodeEntity):
    graph_label: ClassVar[str | None] = "Team"

    id: UUID
    name: str = ""


class MemberOf(RelationEntity):
    role: Role = Role.MEMBER
    since: int = 2020


@pytest.fixture
def qb() -> QueryBuilder:
    return QueryBuilder()


@pytest.fixture
def page() -> Page:
    return Page(id="pid4", path="/home")


@pytest.fixture
def components() -> tuple[Component, Component]:
    return Component(id="cid3", name="header"), Component(id="cid73", name="footer")


@pytest.fixture
def user() -> User:
    return User(id="u1", name="Ada", email="ada@example.com", session_token="secret")


@pytest.fixture
def group() -> Group:
    return Group(id=UUID("12345678-1234-5678-1234-567812345678"), name="core")

from typing import ClassVar
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import Component, HasComponent, MemberOf, Page

from neoquery.core.base import ErrorCode
from neoquery.core.errors import ParamCollisionError, StateError, UnknownAliasError
from neoquery.domain.entity import NodeEntity, Prop, RelationEntity
from neoquery.infrastructure.neo4j.driver import Neo4jQuery
from neoquery.query_builder import Order, QueryBuilder
from neoquery.query_builder.aliases import ReturnRef
from neoquery.query_builder.where import CompareJoiner, CompareOperator, Where


class Knows(NodeEntity):
    name: str = ""


class KnowsEdge(RelationEntity):
    graph_label: ClassVar[str | None] = "KNOWS"


def build_page_components_query(page, c1, c2):
    hc1, hc2 = HasComponent(), HasComponent()
    where = (
        Where()
        .condition(page, "id", CompareOperator.EQ)
        .join(CompareJoiner.AND)
        .nest(
            Where()
            .condition(c1, "id", CompareOperator.NE)
            .join(CompareJoiner.AND)
            .condition(c2, "id", CompareOperator.NE)
        )
    )
    return (
        QueryBuilder()
        .match()
        .node(page, ["id"]).add_to_return()
        .relation(hc1).add_to_return()
        .node(c1, ["id"]).add_to_return()
        .end_statement()
        .match()
        .node_ref(page)
        .relation(hc2).add_to_return()
        .node(c2, ["id"]).add_to_return()
        .filter(where)
        .end_statement()
        .build()
    )


def test_page_components_end_to_end(page, components):
    query, params = build_page_components_query(page, *components)

    assert query == (
        "MATCH (page1:Page {id: $page1_id})-[has_component1:HAS_COMPONENT]->(component2:Component {id: $component2_id})\n"
        "MATCH (page1)-[has_component2:HAS_COMPONENT]->(component3:Component {id: $component3_id})\n"
        "WHERE page1.id = $where1_id AND (component2.id <> $where2_id AND component3.id <> $where3_id)\n"
        "RETURN page1, has_component1, component2, has_component2, component3"
    )
    assert params == {
        "page1_id": "pid4",
        "component2_id": "cid3",
        "component3_id": "cid73",
        "where1_id": "pid4",
        "where2_id": "cid3",
        "where3_id": "cid73",
    }


def test_every_parameter_in_the_text_is_bound(page, components):
    query, params = build_page_components_query(page, *components)
    for key in params:
        assert f"${key}" in query
    assert query.count("$") == len(params)


def test_aliases_in_a_query_are_distinct(page, components):
    qb = QueryBuilder()
    qb.match().node(page).relation(HasComponent()).node(components[0]).end_statement()
    qb.match().node(Page(id="x")).relation(HasComponent()).node(components[1]).end_statement()
    aliases = [qb.registry.alias_of(obj) for obj in (page, components[0], components[1])]
    assert aliases == ["page1", "component2", "component4"]


def test_node_and_relation_with_the_same_label_get_distinct_aliases(qb):
    first, edge, second = Knows(name="a"), KnowsEdge(), Knows(name="b")
    query, _ = qb.match().node(first).relation(edge).node(second).end_statement().build(returns=[first, second])
    aliases = [qb.registry.alias_of(obj) for obj in (first, edge, second)]
    assert aliases == ["knows1", "knows2", "knows3"]
    assert len(set(aliases)) == 3
    assert query.endswith("RETURN knows1, knows3")


def test_build_of_empty_query_fails(qb):
    with pytest.raises(StateError, match="empty query") as exc_info:
        qb.build()
    assert exc_info.value.code is ErrorCode.QUERY_STATE


def test_built_builder_refuses_every_call(qb, page):
    qb.match().node(page).end_statement().build()
    with pytest.raises(StateError, match="already been built"):
        qb.match()
    with pytest.raises(StateError):
        qb.build()


def test_with_narrows_scope_and_prunes_returns(qb, user, group):
    member_of = MemberOf()
    (
        qb.match()
        .node(user, ["id"])
        .add_to_return()
        .relation(member_of)
        .add_to_return()
        .node(group)
        .add_to_return()
        .end_statement()
        .with_(user, group)
    )
    assert [ref.alias for ref in qb.returns] == ["user1", "team2"]
    assert qb.registry.visible == {"user1", "team2"}
    with pytest.raises(UnknownAliasError, match="not in scope"):
        qb.match().node_ref(member_of)


def test_with_without_aliases_is_a_state_error(qb, user):
    qb.match().node(user).end_statement()
    with pytest.raises(StateError, match="with_ needs at least one alias") as exc_info:
        qb.with_()
    assert exc_info.value.details.operation == "with_"
    assert qb.registry.visible == {"user1"}


def test_with_filter_and_set(qb, user, group):
    where = Where().condition(group, Prop("name", "core")).join(CompareJoiner.OR).is_null(group, "name")
    query, params = (
        qb.match()
        .node(user, ["id"])
        .relation(MemberOf())
        .node(group)
        .end_statement()
        .with_(user, group)
        .filter(where)
        .set(user, [Prop("name", "Ada")])
        .build(returns=[user])
    )
    assert query == (
        "MATCH (user1:User {id: $user1_id})-[member_of1:MEMBER_OF]->(team2)\n"
        "WITH user1, team2\n"
        "WHERE team2.name = $where1_name OR team2.name IS NULL\n"
        "SET user1.name = $set1_name\n"
        "RETURN user1"
    )
    assert params == {"user1_id": "u1", "where1_name": "core", "set1_name": "Ada"}


def test_builder_set_defaults_to_the_previous_entity(qb, user):
    query, _ = qb.match().node(user, ["id"]).end_statement().with_(user).set(props=["email"]).build()
    assert query.endswith("SET user1.email = $set1_email")


def test_filter_only_directly_after_with(qb, user):
    qb.match().node(user).end_statement()
    with pytest.raises(StateError, match="Cannot add WHERE after MATCH"):
        qb.filter(Where().is_not_null(user))


def test_filter_at_most_once_after_with(qb, user):
    qb.match().node(user).end_statement().with_(user).filter(Where().is_not_null(user))
    with pytest.raises(StateError):
        qb.filter(Where().is_not_null(user))


def test_with_after_with_requires_returns_to_build(qb, user):
    qb.match().node(user).end_statement().with_(user)
    with pytest.raises(StateError, match="without anything to return"):
        qb.build()


def test_where_counter_runs_across_clauses(qb, user, group):
    query, params = (
        qb.match()
        .node(user)
        .filter(Where().condition(user, "id"))
        .end_statement()
        .with_(user)
        .filter(Where().condition(user, "name"))
        .build(returns=[user])
    )
    assert "WHERE user1.id = $where1_id" in query
    assert "WHERE user1.name = $where2_name" in query
    assert params == {"where1_id": "u1", "where2_name": "Ada"}


def test_order_skip_limit_after_return(qb, user):
    query, params = (
        qb.match()
        .node(user)
        .add_to_return()
        .end_statement()
        .order_by(user, "name")
        .order_by("user1", "email", Order.DESC)
        .skip(20)
        .limit(10)
        .build()
    )
    assert query == (
        "MATCH (user1)\n"
        "RETURN user1\n"
        "ORDER BY user1.name ASC, user1.email DESC\n"
        "SKIP $skip1_count\n"
        "LIMIT $limit1_count"
    )
    assert params == {"skip1_count": 20, "limit1_count": 10}


def test_paginate(qb, user):
    _, params = qb.match().node(user).add_to_return().end_statement().paginate(page=3, page_size=25).build()
    assert params == {"skip1_count": 50, "limit1_count": 25}


@pytest.mark.parametrize(("page_number", "page_size"), [(0, 10), (1, 0)])
def test_paginate_rejects_bad_input(qb, user, page_number, page_size):
    qb.match().node(user).end_statement()
    with pytest.raises(ValueError):
        qb.paginate(page_number, page_size)


def test_tail_order_is_enforced(qb, user):
    qb.match().node(user).add_to_return().end_statement().limit(5)
    with pytest.raises(StateError, match="Cannot add SKIP after LIMIT"):
        qb.skip(1)
    with pytest.raises(StateError):
        qb.order_by(user, "name")


def test_statement_after_tail_is_rejected(qb, user):
    qb.match().node(user).add_to_return().end_statement().order_by(user, "name")
    with pytest.raises(StateError) as exc_info:
        qb.match()
    assert exc_info.value.details.valid_next == ["ORDER_BY", "SKIP", "LIMIT"]


def test_tail_needs_something_to_return(qb, user):
    qb.match().node(user).end_statement().limit(1)
    with pytest.raises(StateError):
        qb.build()


def test_set_returns_replaces_the_list(qb, page, components):
    qb.match().node(page).add_to_return().relation(HasComponent()).node(components[0]).end_statement()
    query, _ = qb.set_returns(components[0], page).build()
    assert query.endswith("RETURN component2, page1")


def test_return_refs_hold_snapshots(qb, page):
    qb.match().node(page, ["id"]).add_to_return().end_statement()
    page.path = "/changed"
    ref = qb.returns[0]
    assert ref == ReturnRef("page1", ref.kind, Page(id="pid4", path="/home"))
    assert ref.entity is not page


def test_param_collision_is_detected(qb, page):
    qb.match().node(page, ["id"]).end_statement()
    with pytest.raises(ParamCollisionError):
        qb._parameters.add("page1_id", "other")


async def test_run_hydrates_returned_aliases_in_row_order(page, components):
    executor = Neo4jQuery(MagicMock())
    executor.execute_list = AsyncMock(
        return_value=[
            {"page1": {"id": "pid4", "path": "/"}, "component2": {"id": "cid3", "name": "a"}},
            {"page1": {"id": "pid4", "path": "/"}, "component2": None},
        ]
    )
    qb = (
        QueryBuilder()
        .match()
        .node(page, ["id"])
        .add_to_return()
        .end_statement()
        .optional_match()
        .node_ref(page)
        .relation(HasComponent())
        .node(components[0])
        .add_to_return()
        .end_statement()
    )

    rows = await qb.run(executor)

    query, params = executor.execute_list.await_args.args
    assert query.endswith("RETURN page1, component2")
    assert params == {"page1_id": "pid4"}
    assert rows == [
        [Page(id="pid4", path="/"), Component(id="cid3", name="a")],
        [Page(id="pid4", path="/"), None],
    ]


async def test_run_with_custom_unpack(page):
    executor = Neo4jQuery(MagicMock())
    executor.execute_list = AsyncMock(return_value=[{"page1": {"id": "pid4", "path": "/"}}])
    qb = QueryBuilder().match().node(page).add_to_return().end_statement()

    rows = await qb.run(executor, unpack=lambda ref, value: (ref.alias, value["id"]))

    assert rows == [[("page1", "pid4")]]

import pytest
from conftest import Component, MemberOf, Page

from neoquery.core.errors import StateError, UnknownAliasError
from neoquery.query_builder import Order, QueryBuilder, Unwinder
from neoquery.query_builder.where import CompareOperator, Where


def test_call_indents_body_and_exposes_its_returns(qb, user, group):
    query, params = (
        qb.match()
        .node(user, ["id"])
        .add_to_return()
        .end_statement()
        .call(
            [user],
            lambda sub: sub.match().node_ref(user).relation(MemberOf()).node(group).add_to_return().end_statement(),
        )
        .order_by(group, "name", Order.DESC)
        .build()
    )
    assert query == (
        "MATCH (user1:User {id: $user1_id})\n"
        "CALL (user1) {\n"
        "  MATCH (user1)-[member_of1:MEMBER_OF]->(team2)\n"
        "  RETURN team2\n"
        "}\n"
        "RETURN user1, team2\n"
        "ORDER BY team2.name DESC"
    )
    assert params == {"user1_id": "u1"}


def test_call_continues_alias_and_parameter_counters(qb, page, components):
    def inner(sub: QueryBuilder) -> None:
        (
            sub.match()
            .node_ref(page)
            .relation(MemberOf())
            .node(components[1])
            .filter(Where().condition(components[1], "id", CompareOperator.NE))
            .add_to_return()
            .end_statement()
        )

    query, params = (
        qb.match()
        .node(page)
        .filter(Where().condition(page, "id"))
        .end_statement()
        .match()
        .node(components[0], ["id"])
        .end_statement()
        .call([page], inner)
        .build()
    )
    assert "  MATCH (page1)-[member_of1:MEMBER_OF]->(component3)\n  WHERE component3.id <> $where2_id" in query
    assert params == {
        "where1_id": "pid4",
        "component2_id": "cid3",
        "where2_id": "cid73",
    }


def test_call_without_imports(qb, page):
    query, _ = qb.call([], lambda sub: sub.match().node(page).add_to_return().end_statement()).build()
    assert query == "CALL () {\n  MATCH (page1)\n  RETURN page1\n}\nRETURN page1"


def test_call_only_sees_imported_aliases(qb, page, user):
    qb.match().node(page).end_statement().match().node(user).end_statement()
    with pytest.raises(UnknownAliasError, match="'page1' is not in scope") as exc_info:
        qb.call([user], lambda sub: sub.match().node_ref(page).end_statement())
    assert exc_info.value.details.valid_next == ["user2"]


def test_call_does_not_leak_internal_aliases(qb, page, components):
    qb.match().node(page).end_statement()
    qb.call(
        [page],
        lambda sub: sub.match().node_ref(page).relation(MemberOf()).node(components[0]).end_statement().set_returns(page),
    )
    with pytest.raises(UnknownAliasError):
        qb.order_by(components[0], "id")


def test_call_imports_must_be_known(qb, page):
    with pytest.raises(UnknownAliasError, match="has not been given an alias"):
        qb.call([page], lambda sub: None)


def test_subquery_cannot_be_built_on_its_own(qb, page):
    def inner(sub: QueryBuilder) -> None:
        sub.match().node(page).add_to_return().end_statement()
        sub.build()

    with pytest.raises(StateError, match="enclosing call"):
        qb.call([], inner)


def test_subquery_left_open_is_rejected(qb, page):
    with pytest.raises(StateError, match="call end_statement"):
        qb.call([], lambda sub: sub.match().node(page))


def test_unwind_then_match_by_unwound_values(qb):
    ids = Unwinder(["cid3", "cid73"])
    query, params = (
        qb.unwind(ids)
        .match()
        .node_by_unwound(Component(id=""), "id", ids)
        .add_to_return()
        .end_statement()
        .build()
    )
    assert query == "UNWIND $unwind1 AS unwind1\nMATCH (component1:Component {id: unwind1})\nRETURN component1"
    assert params == {"unwind1": ["cid3", "cid73"]}


def test_unwinders_get_their_own_counter(qb, page):
    first, second = Unwinder([1]), Unwinder([2])
    query, params = qb.match().node(page).end_statement().unwind(first).unwind(second).build(returns=[first, second])
    assert query.endswith("UNWIND $unwind1 AS unwind1\nUNWIND $unwind2 AS unwind2\nRETURN unwind1, unwind2")
    assert params == {"unwind1": [1], "unwind2": [2]}


def test_unwind_alone_has_nothing_to_return(qb):
    qb.unwind(Unwinder([1, 2]))
    with pytest.raises(StateError, match="without anything to return"):
        qb.build()


def test_unwound_values_are_plain_returns(qb):
    ids = Unwinder(["a"])
    qb.unwind(ids).set_returns(ids)
    assert qb.returns[0].entity is None


def test_node_by_unwound_needs_a_known_property(qb):
    ids = Unwinder(["x"])
    qb.unwind(ids)
    with pytest.raises(ValueError, match="has no query property"):
        qb.match().node_by_unwound(Page(id=""), "missing", ids)


def test_unwinder_from_entities(components, group):
    assert Unwinder.from_entities(components, "id").values == ["cid3", "cid73"]
    assert Unwinder.from_entities([group], "id").values == [str(group.id)]
    assert len(Unwinder.from_entities([], "id")) == 0

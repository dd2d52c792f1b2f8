import pytest

from neoquery.query_builder.patterns import (
    Direction,
    NodePattern,
    PatternBuilder,
    RelationshipPattern,
    property_map,
)


def test_node_pattern_with_label_and_properties():
    assert NodePattern("page1", ["Page"], "{id: $page1_id}").build() == "(page1:Page {id: $page1_id})"


def test_bare_node_pattern():
    assert NodePattern("page1").build() == "(page1)"


def test_node_pattern_additional_labels_are_not_duplicated():
    pattern = NodePattern("user1", ["User"]).add_labels("Admin", "User")
    assert pattern.build() == "(user1:User:Admin)"


@pytest.mark.parametrize(
    ("direction", "expected"),
    [
        (Direction.OUTGOING, "-[r1:REL]->"),
        (Direction.INCOMING, "<-[r1:REL]-"),
        (Direction.UNDIRECTED, "-[r1:REL]-"),
    ],
)
def test_relationship_directions(direction, expected):
    assert RelationshipPattern("r1", ["REL"], direction=direction).build() == expected


def test_anonymous_undirected_relationship():
    assert RelationshipPattern(direction=Direction.UNDIRECTED).build() == "--"


def test_variable_length_goes_before_properties():
    pattern = RelationshipPattern("r1", ["REL"], "{w: $r1_w}").with_length(1, 3)
    assert pattern.build() == "-[r1:REL*1..3 {w: $r1_w}]->"


def test_open_ended_variable_length():
    assert RelationshipPattern("r1", ["REL"]).with_length(min_hops=2).build() == "-[r1:REL*2..]->"
    assert RelationshipPattern("r1", ["REL"]).with_length(max_hops=4).build() == "-[r1:REL*..4]->"


def test_inverted_hop_bounds_are_rejected():
    with pytest.raises(ValueError):
        RelationshipPattern("r1", ["REL"]).with_length(3, 1)


def test_pattern_builder_renders_late():
    node = NodePattern("a", ["A"])
    builder = PatternBuilder().node(node).relationship(RelationshipPattern("r", ["R"])).node(NodePattern("b"))
    node.add_labels("Extra")
    assert builder.build() == "(a:A:Extra)-[r:R]->(b)"


def test_property_map():
    assert property_map({"id": "unwind1"}) == "{id: unwind1}"
    assert property_map({}) == ""

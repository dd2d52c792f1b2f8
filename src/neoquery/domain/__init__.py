from .entity import EntityKind, GraphEntity, NodeEntity, Prop, PropLike, RelationEntity

__all__ = ["EntityKind", "GraphEntity", "NodeEntity", "Prop", "PropLike", "RelationEntity"]

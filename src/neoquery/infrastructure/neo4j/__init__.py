from .driver import Neo4jQuery, create_neo4j_driver, create_neo4j_query

__all__ = ["Neo4jQuery", "create_neo4j_driver", "create_neo4j_query"]

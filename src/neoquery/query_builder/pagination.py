"""Pagination mixin for the query builder.

SKIP and LIMIT are rendered after RETURN, and their counts are bound as
parameters rather than inlined.
"""

from typing import Self

from neoquery.query_builder.interfaces import QueryBuilderInterface
from neoquery.query_builder.state import ClauseType


class PaginationMixin(QueryBuilderInterface):
    """Mixin adding skip, limit and paginate to a query builder."""

    def skip(self, count: int) -> Self:
        """Add a SKIP clause to the query.

        Args:
            count: Number of results to skip

        Returns:
            Self for method chaining
        """
        if count < 0:
            raise ValueError("Skip count must be greater than or equal to 0")

        self.add_clause(ClauseType.SKIP, "skip")
        param_name = self.add_parameter("skip", count)
        self.append_tail_part(f"SKIP ${param_name}")  # type: ignore[arg-type]
        return self

    def limit(self, count: int) -> Self:
        """Add a LIMIT clause to the query.

        Args:
            count: Maximum number of results to return

        Returns:
            Self for method chaining
        """
        if count < 0:
            raise ValueError("Limit count must be greater than or equal to 0")

        self.add_clause(ClauseType.LIMIT, "limit")
        param_name = self.add_parameter("limit", count)
        self.append_tail_part(f"LIMIT ${param_name}")  # type: ignore[arg-type]
        return self

    def paginate(self, page: int, page_size: int) -> Self:
        """Add pagination (SKIP and LIMIT) based on page number and size.

        Args:
            page: Page number (1-based)
            page_size: Number of items per page

        Returns:
            Self for method chaining
        """
        if page < 1:
            raise ValueError("Page number must be greater than or equal to 1")

        if page_size < 1:
            raise ValueError("Page size must be greater than or equal to 1")

        return self.skip((page - 1) * page_size).limit(page_size)

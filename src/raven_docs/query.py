"""
Query - RQL assembly and typed query helpers.

Every query path (CollectionService and the free functions below) builds
the same statement shape:

    from @all_docs where @metadata.'@collection' = '<name>'
        [AND (<where>)] [ORDER BY <field> [DESC]] LIMIT <skip>, <take>

and runs it as a raw query with named parameters bound. Option helpers
return new QueryOptions instances and leave the caller's untouched.
"""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import TYPE_CHECKING, Any, Sequence, TypeVar

from .session import open_session, without_metadata, zero_value
from .types import (
    DEFAULT_TAKE,
    MAX_TAKE,
    GenericQueryResult,
    QueryError,
    QueryOptions,
)

if TYPE_CHECKING:
    from .types import DatabaseLike

T = TypeVar("T")

__all__ = [
    "build_query",
    "normalize_options",
    "with_field_filter",
    "with_range_filter",
    "with_search",
    "query",
    "query_all",
    "query_by_field",
    "query_by_range",
    "search",
]

logger = logging.getLogger(__name__)


def normalize_options(options: QueryOptions | None = None) -> QueryOptions:
    """
    Apply the default page size and the page size ceiling.

    Returns:
        A copy of `options` with `take` in [1, MAX_TAKE].
    """
    options = options or QueryOptions()
    take = options.take
    if take <= 0:
        take = DEFAULT_TAKE
    if take > MAX_TAKE:
        take = MAX_TAKE
    return replace(options, take=take, parameters=dict(options.parameters))


def with_field_filter(
    options: QueryOptions | None,
    field_name: str,
    field_value: Any,
) -> QueryOptions:
    """Options matching documents whose `field_name` equals `field_value`."""
    options = options or QueryOptions()
    return replace(
        options,
        where_clause=f"{field_name} = $value",
        parameters={**options.parameters, "value": field_value},
    )


def with_range_filter(
    options: QueryOptions | None,
    field_name: str,
    min_value: Any,
    max_value: Any,
) -> QueryOptions:
    """Options matching documents with min_value <= `field_name` <= max_value."""
    options = options or QueryOptions()
    return replace(
        options,
        where_clause=f"{field_name} >= $minValue AND {field_name} <= $maxValue",
        parameters={**options.parameters, "minValue": min_value, "maxValue": max_value},
    )


def with_search(
    options: QueryOptions | None,
    search_term: str,
    search_fields: Sequence[str],
) -> QueryOptions:
    """
    Options running a full-text search for `search_term` over each field.

    The per-field predicates are ORed together. With no fields the
    options come back with their WHERE clause unchanged.
    """
    options = options or QueryOptions()
    parameters = dict(options.parameters)
    conditions = []
    for i, field in enumerate(search_fields):
        param_name = f"searchTerm{i}"
        conditions.append(f"search({field}, ${param_name})")
        parameters[param_name] = search_term

    if not conditions:
        return replace(options, parameters=parameters)

    return replace(
        options,
        where_clause=f"({' OR '.join(conditions)})",
        parameters=parameters,
    )


def build_query(collection: str, options: QueryOptions) -> str:
    """
    Build the RQL statement for a collection query.

    Args:
        collection: Collection name matched against @metadata.'@collection'.
        options: Query options; pass them through normalize_options first
            to get the default page size.

    Returns:
        The RQL text.
    """
    rql = f"from @all_docs where @metadata.'@collection' = '{collection}'"

    if options.where_clause:
        rql += f" AND ({options.where_clause})"

    if options.order_by:
        if options.order_desc:
            rql += f" ORDER BY {options.order_by} DESC"
        else:
            rql += f" ORDER BY {options.order_by}"

    if options.skip > 0 or options.take > 0:
        take = options.take if options.take > 0 else DEFAULT_TAKE
        rql += f" LIMIT {options.skip}, {take}"

    return rql


def query(
    service: DatabaseLike,
    collection: str,
    document_type: type[T],
    options: QueryOptions | None = None,
) -> GenericQueryResult[T]:
    """
    Run a paginated query over a collection.

    Args:
        service: Database service to open the session on.
        collection: Collection name.
        document_type: Class the results are deserialized into.
        options: Pagination, ordering and filtering. Not modified.

    Returns:
        GenericQueryResult with the page of documents.

    Raises:
        ConnectionError: If the session cannot be opened.
        QueryError: If the query fails.
    """
    with open_session(service) as session:
        options = normalize_options(options)
        rql = build_query(collection, options)
        logger.debug("Running query on %s: %s", service.database, rql)

        try:
            raw_query = session.advanced.raw_query(rql, document_type)
            for key, value in options.parameters.items():
                raw_query = raw_query.add_parameter(key, value)
            documents = list(raw_query)
        except Exception as e:
            raise QueryError(f"failed to execute query: {e}", query=rql) from e

    results = [
        without_metadata(document) if document is not None else zero_value(document_type)
        for document in documents
    ]

    return GenericQueryResult(
        results=results,
        total_count=len(results),
        skip=options.skip,
        take=options.take,
        has_more=options.take > 0 and len(results) == options.take,
    )


def query_all(
    service: DatabaseLike,
    collection: str,
    document_type: type[T],
) -> GenericQueryResult[T]:
    """Query up to MAX_TAKE documents of a collection."""
    return query(service, collection, document_type, QueryOptions(skip=0, take=MAX_TAKE))


def query_by_field(
    service: DatabaseLike,
    collection: str,
    document_type: type[T],
    field_name: str,
    field_value: Any,
    options: QueryOptions | None = None,
) -> GenericQueryResult[T]:
    """Query documents whose `field_name` equals `field_value`."""
    return query(
        service,
        collection,
        document_type,
        with_field_filter(options, field_name, field_value),
    )


def query_by_range(
    service: DatabaseLike,
    collection: str,
    document_type: type[T],
    field_name: str,
    min_value: Any,
    max_value: Any,
    options: QueryOptions | None = None,
) -> GenericQueryResult[T]:
    """Query documents whose `field_name` lies in [min_value, max_value]."""
    return query(
        service,
        collection,
        document_type,
        with_range_filter(options, field_name, min_value, max_value),
    )


def search(
    service: DatabaseLike,
    collection: str,
    document_type: type[T],
    search_term: str,
    search_fields: Sequence[str],
    options: QueryOptions | None = None,
) -> GenericQueryResult[T]:
    """
    Full-text search across several fields.

    Matching rules (case, tokenization) are those of the server's search().
    An empty `search_fields` behaves like an unfiltered query.
    """
    return query(
        service,
        collection,
        document_type,
        with_search(options, search_term, search_fields),
    )

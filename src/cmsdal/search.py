"""Smart keyword search shared by the list endpoints.

A digit-only keyword is first tried as an exact id among the rows that are
not soft deleted. A hit keeps only the id match; the other filters do not
apply. Without a hit the id predicate is discarded and the same digits are
searched as a name substring together with the other filters. Other keywords
always search by name.
"""
import logging
import re
from typing import Any, Callable, Optional

from .conditions import QueryConditionBuilder
from .crud import CrudEngine

logger = logging.getLogger(__name__)

_DIGITS = re.compile(r"^\d+$")

FilterFn = Callable[[QueryConditionBuilder], Any]


def build_keyword_conditions(crud: CrudEngine, table: str, keywords: Any,
                             apply_filters: Optional[FilterFn] = None,
                             id_field: str = "id", name_field: str = "name") -> QueryConditionBuilder:
    """Build the list-page conditions for ``keywords`` plus the other filters.

    The engine's soft-delete predicate (if any) is always added last.

    Args:
        crud: Engine used for the ``COUNT(*)`` id lookup.
        table: Table the id lookup runs against.
        keywords: Raw ``keywords`` query value.
        apply_filters: Adds every non-keyword filter to a builder. Skipped
            when the keyword matches an id.
        id_field: Column for the exact id match.
        name_field: Column for the substring match.

    Returns:
        A new builder holding the conditions.
    """
    builder = crud.builder()
    filters = apply_filters or (lambda b: None)
    text = keywords.strip() if isinstance(keywords, str) else ""

    def exclude_deleted() -> QueryConditionBuilder:
        if crud.soft_delete_field:
            builder.add_number_condition(crud.soft_delete_field, 0)
        return builder

    if _DIGITS.match(text):
        builder.add_number_condition(id_field, int(text))
        by_id = exclude_deleted().build()
        if crud.count(table, by_id["where"], by_id["params"]):
            return builder
        logger.debug("No %s row with %s=%s; searching %s instead", table, id_field, text, name_field)
        builder.reset()

    builder.add_string_condition(name_field, text, "like")
    filters(builder)
    return exclude_deleted()

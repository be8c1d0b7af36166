import logging
from contextlib import closing
from typing import Callable, Optional, TypeVar

from ..domain.interfaces import MetadataCursor, MetadataRow
from ..domain.models import DocumentNode
from ..exceptions import DiscoveryError

logger = logging.getLogger(__name__)

T = TypeVar("T")

RowFilter = Callable[[MetadataRow], bool]


def accept_all(row: MetadataRow) -> bool:
    return True


class TableChildIngester:
    """
    Streams one metadata cursor into child nodes of a parent.

    `child_factory` returns the (attached) child for a row, `row_mutator`
    populates it. The cursor is always closed; any failure aborts the parent's
    discovery as a DiscoveryError.
    """

    def ingest(
        self,
        parent: DocumentNode,
        what: str,
        child_factory: Callable[[MetadataRow], T],
        cursor_supplier: Callable[[], MetadataCursor],
        row_mutator: Callable[[T, MetadataRow], None],
        row_filter: Optional[RowFilter] = None,
    ) -> int:
        row_filter = row_filter or accept_all
        accepted = 0
        try:
            with closing(cursor_supplier()) as cursor:
                for row in cursor:
                    if not row_filter(row):
                        logger.debug(f"Skipped {what} row of {parent.name} due to row filtering")
                        continue
                    row_mutator(child_factory(row), row)
                    accepted += 1
        except DiscoveryError:
            raise
        except Exception as e:
            raise DiscoveryError(f"Failed to read {what} of {type(parent).__name__} '{parent.name}': {e}") from e
        return accepted

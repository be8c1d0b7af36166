"""Type mappers: declared pairs of database-side and python-side types."""

import datetime
import decimal
import uuid
from typing import Any, Callable, Iterator, List, Optional

from ..exceptions import ColumnResolutionError


class TypeMapper:
    """
    Declares that values of `database_type` read from a column are exposed
    to python code as `python_type`.
    """

    def __init__(
        self,
        database_type: type,
        python_type: type,
        to_python: Optional[Callable[[Any], Any]] = None,
        to_database: Optional[Callable[[Any], Any]] = None,
        label: Optional[str] = None,
    ):
        self.database_type = database_type
        self.python_type = python_type
        self._to_python = to_python
        self._to_database = to_database
        self.label = label or f"{database_type.__name__} -> {python_type.__name__}"

    @property
    def is_identity(self) -> bool:
        return self.database_type is self.python_type

    def to_python(self, value: Any) -> Any:
        if value is None or self._to_python is None:
            return value
        return self._to_python(value)

    def to_database(self, value: Any) -> Any:
        if value is None or self._to_database is None:
            return value
        return self._to_database(value)

    def __repr__(self) -> str:
        return f"TypeMapper({self.label})"


def identity_mapper(python_type: type) -> TypeMapper:
    return TypeMapper(python_type, python_type, label=f"{python_type.__name__} identity")


IDENTITY_TYPES = (
    str,
    int,
    float,
    bool,
    bytes,
    decimal.Decimal,
    datetime.date,
    datetime.datetime,
    datetime.time,
    datetime.timedelta,
    uuid.UUID,
    dict,
    list,
)


class TypeMapperRegistry:
    """Ordered collection of the type mappers known to a handler."""

    def __init__(self, mappers: Optional[List[TypeMapper]] = None):
        self._mappers: List[TypeMapper] = list(mappers or [])

    @classmethod
    def default(cls) -> "TypeMapperRegistry":
        registry = cls([identity_mapper(t) for t in IDENTITY_TYPES])
        # Non-identity conveniences, never picked for column resolution
        registry.register(TypeMapper(
            int, bool,
            to_python=lambda v: v != 0,
            to_database=lambda v: 1 if v else 0,
            label="int -> bool",
        ))
        registry.register(TypeMapper(
            str, uuid.UUID,
            to_python=uuid.UUID,
            to_database=str,
            label="str -> UUID",
        ))
        return registry

    def register(self, mapper: TypeMapper) -> None:
        self._mappers.append(mapper)

    def __iter__(self) -> Iterator[TypeMapper]:
        return iter(self._mappers)

    def __len__(self) -> int:
        return len(self._mappers)

    def identity_for(self, mapped_type: type) -> TypeMapper:
        """
        Returns the single mapper whose database and python types both equal
        `mapped_type`. Zero or several candidates raise ColumnResolutionError.
        """
        candidates = [
            m for m in self._mappers
            if m.database_type is mapped_type and m.python_type is mapped_type
        ]
        if len(candidates) != 1:
            raise ColumnResolutionError(
                f"Found {len(candidates)} identity type mappers for mapping "
                f"'{mapped_type.__qualname__}', expected exactly one."
            )
        return candidates[0]

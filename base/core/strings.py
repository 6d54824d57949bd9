import re

from pydantic_core import core_schema
from pydantic.annotated_handlers import GetCoreSchemaHandler, GetJsonSchemaHandler
from pydantic.json_schema import JsonSchemaValue
from typing import Any, ClassVar, Self


class ValidatedStr(str):
    """
    A `str` that can only be obtained through `decode`, so that holding one
    proves that the value was checked, e.g., before it is interpolated into a
    query or a URL.  Usable as the type of Pydantic fields.
    """

    __slots__ = ()

    pattern: ClassVar[str] = ""
    """
    The regex that the whole value must match, when not empty.
    """
    examples: ClassVar[tuple[str, ...]] = ()

    @classmethod
    def __get_pydantic_core_schema__(
        cls,
        _source: type[Any],
        _handler: GetCoreSchemaHandler,
    ) -> core_schema.CoreSchema:
        return core_schema.no_info_after_validator_function(
            cls.decode,
            core_schema.str_schema(),
            serialization=core_schema.to_string_ser_schema(),
        )

    @classmethod
    def __get_pydantic_json_schema__(
        cls,
        schema: core_schema.CoreSchema,
        handler: GetJsonSchemaHandler,
    ) -> JsonSchemaValue:
        json_schema = handler(schema)
        json_schema["title"] = cls.__name__
        if cls.pattern:
            json_schema["pattern"] = f"^{cls.pattern}$"
        if cls.examples:
            json_schema["examples"] = list(cls.examples)
        return json_schema

    @classmethod
    def decode(cls, v: Any, /) -> Self:
        """
        Raises `TypeError` when `v` is not a string, and `ValueError` when it
        does not match `pattern` or fails the checks of `_parse`.
        """
        if not isinstance(v, str):
            raise TypeError(
                f"invalid {cls.__name__}: expected str, got {type(v).__name__}: {v}"
            )
        if cls.pattern and not re.fullmatch(cls.pattern, v):
            raise ValueError(
                f"invalid {cls.__name__}: expected pattern '{cls.pattern}', got '{v}'"
            )
        return cls._parse(v)

    @classmethod
    def try_decode(cls, v: Any) -> Self | None:
        try:
            return cls.decode(v)
        except (TypeError, ValueError):
            return None

    @classmethod
    def _parse(cls, v: str) -> Self:
        return cls(v)

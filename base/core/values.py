import json
import yaml

from datetime import datetime
from pydantic import BaseModel
from typing import Any


YAML_BLOCK_MIN_LENGTH = 80
"""
Strings with whitespace that are longer than this are dumped as "|-" blocks.
"""


class TicketingYamlDumper(yaml.SafeDumper):
    pass


def _represent_str(dumper: yaml.SafeDumper, data: str) -> yaml.ScalarNode:
    multiline = "\n" in data or (len(data) > YAML_BLOCK_MIN_LENGTH and " " in data)
    return dumper.represent_scalar(
        "tag:yaml.org,2002:str",
        data,
        style="|" if multiline else None,
    )


TicketingYamlDumper.add_representer(str, _represent_str)


def as_plain(value: Any) -> Any:
    """
    Convert models, `ValidatedStr` and datetimes into the JSON primitives, for
    dumps of test results and log lines.  Unknown values become strings.
    """
    match value:
        case BaseModel():
            return value.model_dump(mode="json")
        case dict():
            return {str(key): as_plain(item) for key, item in value.items()}
        case list() | tuple() | set():
            return [as_plain(item) for item in value]
        case datetime():
            return value.isoformat()
        case bool() | int() | float() | None:
            return value
        case _:
            return str(value)


def as_json(value: Any, *, indent: int | None = None) -> str:
    return json.dumps(as_plain(value), indent=indent)


def as_yaml(value: Any, *, sort_keys: bool = False) -> str:
    return yaml.dump(
        as_plain(value),
        Dumper=TicketingYamlDumper,
        sort_keys=sort_keys,
        allow_unicode=True,
    ).strip()

"""
Dot/bracket path expressions over generic tree values.

A path is a string of '.'-separated segments. Each segment is an
identifier, optionally followed by one or more array indices, or a
bare index:

    choices[0].delta.content
    output[1][0].text
    [0].name

Reading never raises on missing data: a missing intermediate
short-circuits to the ABSENT sentinel, which is distinct from a JSON
null (None). Writing creates missing intermediate dictionaries, but
never creates lists or list elements.

Example:
    ```python
    from madapt.engine.paths import get_path, set_path, ABSENT

    data = {'choices': [{'message': {'content': "hi"}}]}
    get_path(data, "choices[0].message.content")  # "hi"
    get_path(data, "choices[1].message") is ABSENT  # True

    out = set_path({}, "message.author.role", "user")
    # {'message': {'author': {'role': 'user'}}}
    ```
"""

import re
from collections.abc import Mapping, MutableMapping
from typing import Any, Final

from .errors import PathSyntaxError, PathWriteError


class _Absent:
    """Type of the ABSENT sentinel."""

    _instance: '_Absent | None' = None

    def __new__(cls) -> '_Absent':
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __bool__(self) -> bool:
        return False

    def __repr__(self) -> str:
        return "ABSENT"


ABSENT: Final = _Absent()

# A segment is a key followed by zero or more indices; the key may be
# empty only when at least one index follows.
_SEGMENT_RE = re.compile(r"^([^.\[\]]*)((?:\[\d+\])*)$")
_INDEX_RE = re.compile(r"\[(\d+)\]")

# A parsed path step: a string for a key, an int for an index
PathStep = str | int


def parse_path(path: str) -> list[PathStep]:
    """Split a path expression into keys and indices.

    Raises:
        PathSyntaxError: if the path is empty or malformed.
    """
    if not isinstance(path, str) or not path.strip():
        raise PathSyntaxError("Empty path expression")

    steps: list[PathStep] = []
    for segment in path.strip().split('.'):
        match = _SEGMENT_RE.match(segment)
        if match is None:
            raise PathSyntaxError(
                f"Invalid segment '{segment}' in path '{path}'"
            )
        key, indices = match.groups()
        if not key and not indices:
            raise PathSyntaxError(f"Empty segment in path '{path}'")
        if key:
            steps.append(key)
        steps.extend(int(i) for i in _INDEX_RE.findall(indices))
    return steps


def is_valid_path(path: str) -> bool:
    try:
        parse_path(path)
    except PathSyntaxError:
        return False
    return True


def get_path(root: Any, path: str) -> Any:
    """Read the value at path, or return ABSENT if any step is
    missing.

    Raises:
        PathSyntaxError: if the path is empty or malformed.
    """
    value = root
    for step in parse_path(path):
        match step:
            case str() if isinstance(value, Mapping):
                if step not in value:
                    return ABSENT
                value = value[step]
            case int() if isinstance(value, list | tuple):
                if step >= len(value):
                    return ABSENT
                value = value[step]
            case _:
                return ABSENT
    return value


def set_path(
    root: MutableMapping[str, Any], path: str, value: Any
) -> MutableMapping[str, Any]:
    """Write value at path in root, creating intermediate
    dictionaries. The root is modified in place and returned.

    Index steps are only followed where the list already exists at
    that depth and holds the index.

    Raises:
        PathSyntaxError: if the path is empty or malformed.
        PathWriteError: if an index is missing, or a non-container
            value is in the way.
    """
    steps = parse_path(path)
    node: Any = root
    for position, step in enumerate(steps):
        last = position == len(steps) - 1
        match step:
            case str():
                if not isinstance(node, MutableMapping):
                    raise PathWriteError(
                        f"Cannot set key '{step}' of path '{path}' "
                        f"into a {type(node).__name__} value"
                    )
                if last:
                    node[step] = value
                elif step not in node or node[step] is None:
                    if isinstance(steps[position + 1], int):
                        raise PathWriteError(
                            f"No list at '{step}' of path '{path}'"
                        )
                    node[step] = {}
                    node = node[step]
                else:
                    node = node[step]
            case int():
                if not isinstance(node, list):
                    raise PathWriteError(
                        f"No list to index with [{step}] in path '{path}'"
                    )
                if step >= len(node):
                    raise PathWriteError(
                        f"Index [{step}] out of range in path '{path}'"
                    )
                if last:
                    node[step] = value
                else:
                    node = node[step]
    return root

"""
Maven version ordering.

Follows the rules of Maven's ``ComparableVersion`` so that upgrade decisions
match what Maven itself considers newer:

* versions are case-insensitive and split on ``.``, ``-`` and on every
  transition between digits and letters;
* numeric items compare numerically (``1.10 > 1.9``);
* qualifiers are ordered ``alpha < beta < milestone < rc == cr < snapshot <
  "" == ga == final == release < sp``, unknown qualifiers sort after ``sp``
  alphabetically;
* trailing "null" items are dropped, so ``1 == 1.0 == 1.0.0 == 1.0-final``.
"""

from functools import total_ordering
from typing import List, Union

_QUALIFIERS = ["alpha", "beta", "milestone", "rc", "snapshot", "", "sp"]
_ALIASES = {"ga": "", "final": "", "release": "", "cr": "rc"}
_SHORT_QUALIFIERS = {"a": "alpha", "b": "beta", "m": "milestone"}
_RELEASE_INDEX = _QUALIFIERS.index("")

Item = Union[int, str, list]


def _qualifier_key(value: str):
    value = _ALIASES.get(value, value)
    if value in _QUALIFIERS:
        return (_QUALIFIERS.index(value), "")
    return (len(_QUALIFIERS), value)


def _is_null(item: Item) -> bool:
    if isinstance(item, int):
        return item == 0
    if isinstance(item, str):
        return _qualifier_key(item)[0] == _RELEASE_INDEX
    return not item


def _compare_to_null(item: Item) -> int:
    if isinstance(item, int):
        return 0 if item == 0 else 1
    if isinstance(item, str):
        return _sign(_qualifier_key(item)[0] - _RELEASE_INDEX)
    for child in item:
        result = _compare_to_null(child)
        if result:
            return result
    return 0


def _sign(value) -> int:
    return (value > 0) - (value < 0)


def _compare_items(left: Item, right: Item) -> int:
    if isinstance(left, int):
        if isinstance(right, int):
            return _sign(left - right)
        return 1
    if isinstance(left, str):
        if isinstance(right, str):
            left_key, right_key = _qualifier_key(left), _qualifier_key(right)
            return (left_key > right_key) - (left_key < right_key)
        return -1
    # left is a list
    if isinstance(right, int):
        return -1
    if isinstance(right, str):
        return 1
    return _compare_lists(left, right)


def _compare_lists(left: list, right: list) -> int:
    for index in range(max(len(left), len(right))):
        l_item = left[index] if index < len(left) else None
        r_item = right[index] if index < len(right) else None
        if l_item is None:
            result = -_compare_to_null(r_item)
        elif r_item is None:
            result = _compare_to_null(l_item)
        else:
            result = _compare_items(l_item, r_item)
        if result:
            return result
    return 0


def _parse_item(is_digit: bool, token: str, followed_by_digit: bool = False) -> Item:
    if is_digit:
        return int(token)
    if followed_by_digit and token in _SHORT_QUALIFIERS:
        return _SHORT_QUALIFIERS[token]
    return _ALIASES.get(token, token)


def _normalize(items: list) -> None:
    for child in items:
        if isinstance(child, list):
            _normalize(child)
    index = len(items) - 1
    while index >= 0:
        item = items[index]
        if _is_null(item):
            del items[index]
        elif not isinstance(item, list):
            break
        index -= 1


def _parse(version: str) -> List[Item]:
    version = version.lower()
    root: list = []
    current = root
    is_digit = False
    start = 0

    for index, char in enumerate(version):
        if char == ".":
            current.append(0 if index == start else _parse_item(is_digit, version[start:index]))
            start = index + 1
        elif char == "-":
            current.append(0 if index == start else _parse_item(is_digit, version[start:index]))
            start = index + 1
            sub: list = []
            current.append(sub)
            current = sub
        elif char.isdigit():
            if not is_digit and index > start:
                current.append(_parse_item(False, version[start:index], followed_by_digit=True))
                start = index
                sub = []
                current.append(sub)
                current = sub
            is_digit = True
        else:
            if is_digit and index > start:
                current.append(_parse_item(True, version[start:index]))
                start = index
                sub = []
                current.append(sub)
                current = sub
            is_digit = False

    if len(version) > start:
        current.append(_parse_item(is_digit, version[start:]))

    _normalize(root)
    return root


def _canonical(items: list) -> str:
    parts = []
    for item in items:
        if isinstance(item, list):
            parts.append("-" + _canonical(item))
        else:
            parts.append(("." if parts else "") + str(item))
    return "".join(parts)


@total_ordering
class ComparableVersion:
    """A version string that orders the way Maven orders versions."""

    def __init__(self, version: str):
        if not isinstance(version, str) or not version.strip():
            raise ValueError("version must be a non-empty string")
        self.value = version.strip()
        self.items = _parse(self.value)
        self.canonical = _canonical(self.items)

    def compare_to(self, other: "ComparableVersion") -> int:
        return _compare_lists(self.items, other.items)

    def __eq__(self, other):
        if not isinstance(other, ComparableVersion):
            return NotImplemented
        return self.compare_to(other) == 0

    def __lt__(self, other):
        if not isinstance(other, ComparableVersion):
            return NotImplemented
        return self.compare_to(other) < 0

    def __hash__(self):
        return hash(self.canonical)

    def __str__(self):
        return self.value

    def __repr__(self):
        return f"ComparableVersion({self.value!r})"


def compare_versions(left: str, right: str) -> int:
    """Return -1, 0 or 1 as ``left`` is older, equal to or newer than ``right``."""
    return ComparableVersion(left).compare_to(ComparableVersion(right))


def is_newer(candidate: str, current: str) -> bool:
    """True when ``candidate`` is strictly newer than ``current``."""
    return compare_versions(candidate, current) > 0

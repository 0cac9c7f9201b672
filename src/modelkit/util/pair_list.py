"""
Ordered list of key/value pairs.
"""

from typing import Any, Iterable, Iterator, List, Optional, Tuple


class PairList:
    """
    Ordered sequence of ``(key, value)`` pairs.

    Unlike a dict, position is significant and keys may repeat; input and
    output descriptors bind to graph inputs by position.
    """

    def __init__(self, pairs: Optional[Iterable[Tuple[Any, Any]]] = None):
        self._keys = []
        self._values = []
        for key, value in pairs or ():
            self.add(key, value)

    def add(self, key: Any, value: Any) -> None:
        self._keys.append(key)
        self._values.append(value)

    def keys(self) -> List[Any]:
        return list(self._keys)

    def values(self) -> List[Any]:
        return list(self._values)

    def get(self, key: Any, default: Any = None) -> Any:
        """Value of the first pair with ``key``."""
        try:
            return self._values[self._keys.index(key)]
        except ValueError:
            return default

    def key_at(self, index: int) -> Any:
        return self._keys[index]

    def value_at(self, index: int) -> Any:
        return self._values[index]

    def to_list(self) -> List[Tuple[Any, Any]]:
        return list(zip(self._keys, self._values))

    def is_empty(self) -> bool:
        return not self._keys

    def __iter__(self) -> Iterator[Tuple[Any, Any]]:
        return iter(zip(self._keys, self._values))

    def __len__(self) -> int:
        return len(self._keys)

    def __getitem__(self, index: int) -> Tuple[Any, Any]:
        return self._keys[index], self._values[index]

    def __eq__(self, other) -> bool:
        if not isinstance(other, PairList):
            return NotImplemented
        return self.to_list() == other.to_list()

    def __repr__(self) -> str:
        return f"PairList({self.to_list()})"

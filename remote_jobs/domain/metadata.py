"""Case-insensitive job metadata mapping."""

from __future__ import annotations

from collections.abc import Iterator, MutableMapping
import threading


class CaseInsensitiveMetadata(MutableMapping[str, str]):
    """String mapping whose keys compare case-insensitively.

    The first spelling of a key is preserved for serialization. `metadata_add`
    enforces uniqueness, while item assignment overwrites an existing value
    regardless of the spelling used.
    """

    def __init__(self, initial: dict[str, str] | None = None):
        self._lock = threading.Lock()
        self._values: dict[str, tuple[str, str]] = {}
        for key, value in (initial or {}).items():
            self.metadata_add(key, value)

    def metadata_add(self, key: str, value: str) -> None:
        """Insert a new key.

        Args:
            key: Metadata key, compared case-insensitively.
            value: Metadata value.

        Returns:
            None: Mapping is updated as side effect.

        Raises:
            KeyError: Raised when the key already exists in any casing.
            ValueError: Raised when the key is blank or the value is not a string.
        """

        normalized_key = self._metadata_normalize_key(key)
        if not isinstance(value, str):
            raise ValueError(f"metadata value for {key} must be a string")
        with self._lock:
            if normalized_key in self._values:
                raise KeyError(f"metadata key already present: {key}")
            self._values[normalized_key] = (key, value)

    def metadata_snapshot(self, exclude: tuple[str, ...] = ()) -> dict[str, str]:
        """Return a plain dict copy, optionally without some keys."""

        excluded = {self._metadata_normalize_key(key) for key in exclude}
        with self._lock:
            return {
                original_key: value
                for normalized_key, (original_key, value) in self._values.items()
                if normalized_key not in excluded
            }

    def __getitem__(self, key: str) -> str:
        with self._lock:
            return self._values[self._metadata_normalize_key(key)][1]

    def __setitem__(self, key: str, value: str) -> None:
        normalized_key = self._metadata_normalize_key(key)
        if not isinstance(value, str):
            raise ValueError(f"metadata value for {key} must be a string")
        with self._lock:
            existing = self._values.get(normalized_key)
            original_key = existing[0] if existing is not None else key
            self._values[normalized_key] = (original_key, value)

    def __delitem__(self, key: str) -> None:
        with self._lock:
            del self._values[self._metadata_normalize_key(key)]

    def __iter__(self) -> Iterator[str]:
        with self._lock:
            keys = [original_key for original_key, _ in self._values.values()]
        return iter(keys)

    def __len__(self) -> int:
        with self._lock:
            return len(self._values)

    @staticmethod
    def _metadata_normalize_key(key: str) -> str:
        if not isinstance(key, str) or not key.strip():
            raise ValueError("metadata key must be a non-blank string")
        return key.casefold()

"""
The utility class `LazyLoadingDict` stores memoized objects produced
by a factory function, using a dictionary interface.

The key of the dictionary is the definition that provides the object
instance. Objects are created the first time their key is read and
returned from the cache afterwards. Invalid definitions raise at the
time of the lookup, from the factory function.

Example:
    ```python
    from typing import Literal

    PresetName = Literal['openai', 'anthropic']

    def _create_preset(name: PresetName) -> SSEStreamConfig:
        match name:
            case 'openai':
                return SSEStreamConfig(...)
            case 'anthropic':
                return SSEStreamConfig(...)
            case _:
                # literals do not raise by themselves
                raise ValueError(f"Invalid preset: {name}")

    stream_presets = LazyLoadingDict(_create_preset)
    config = stream_presets['openai']
    ```
"""

from collections.abc import Callable
from typing import TypeVar

# ValueT is the parameter for the stored valued, KeyT for the keys.
ValueT = TypeVar('ValueT')
KeyT = TypeVar('KeyT')


class LazyLoadingDict(dict[KeyT, ValueT]):
    """A lazy dictionary class with memoized objects of type ValueT.

    It is also possible to assign to the dictionary directly, thus
    bypassing the factory function. Assigning to an existing key is
    refused, so that a memoized object is never silently replaced.

    Expected behaviour: may raise ValidationError and ValueErrors.
    """

    def __init__(self, key_creator_func: Callable[[KeyT], ValueT]):
        super().__init__()
        self._key_creator_func = key_creator_func

    def __getitem__(self, key: KeyT) -> ValueT:
        if key in self:
            return super().__getitem__(key)

        # Lazy-load the data, cache it, and return
        value: ValueT = self._key_creator_func(key)
        super().__setitem__(key, value)
        return value

    def __setitem__(self, key: KeyT, value: ValueT) -> None:
        """Allow direct setting of key/value pairs.

        This bypasses the factory function for the given key.

        Raises:
            ValueError: If the key already exists in the dictionary.
        """
        if key in self:
            raise ValueError(
                f"Key '{key}' already exists. Delete it first to overwrite."
            )
        super().__setitem__(key, value)

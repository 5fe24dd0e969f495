"""
Cache Key Codec: Call Signature Keys

Implements:
- derive_key(entity_type, operation, args, kwargs) → deterministic string
- hash_key(key) → fixed-length digest used as the store key
- Same call (structurally equal arguments, same references) = identical key
- Different argument order or value = different key
"""

import dataclasses
import enum
import functools
import hashlib
import inspect
import itertools
import logging
import weakref
from collections.abc import Mapping
from typing import Any, Dict, Optional, Sequence, Set, Tuple

from .errors import KeyDerivationError

logger = logging.getLogger(__name__)

_SCALARS = (type(None), bool, int, float, complex, str, bytes)

_serials: Dict[int, Tuple["weakref.ref", int]] = {}
_counter = itertools.count(1)


class KeyCodec:
    """
    Render call descriptors into stable strings and digest them.

    Design:
    - key = render({type, prop, args, kwargs}) at unbounded depth
    - Positional order matters; keyword arguments are sorted by name
    - Callables and classes render by qualified name plus identity, so the
      same reference always gives the same key
    - hash = SHA256(key) truncated to digest_size bytes (default 128 bits)
    """

    def __init__(self, digest_size: int = 16):
        if not 8 <= digest_size <= 32:
            raise ValueError(f"digest_size must be between 8 and 32 bytes, got {digest_size}")
        self.digest_size = digest_size

    def derive_key(
        self,
        entity_type: str,
        operation: str,
        args: Sequence[Any] = (),
        kwargs: Optional[Dict[str, Any]] = None,
    ) -> str:
        """
        Render a call descriptor into a deterministic string.

        Args:
            entity_type: Name of the wrapped model
            operation: Operation (member) name
            args: Positional arguments of the call
            kwargs: Keyword arguments of the call

        Returns:
            Serialized descriptor

        Raises:
            KeyDerivationError: an argument could not be rendered
        """
        descriptor = {
            "type": entity_type,
            "prop": operation,
            "args": list(args),
            "kwargs": dict(sorted((kwargs or {}).items())),
        }
        try:
            return _render(descriptor, set())
        except KeyDerivationError:
            raise
        except RecursionError as exc:
            raise KeyDerivationError(
                f"arguments of {entity_type}.{operation}() are nested too deeply to render"
            ) from exc
        except Exception as exc:  # noqa: BLE001
            raise KeyDerivationError(
                f"cannot render arguments of {entity_type}.{operation}(): {exc}"
            ) from exc

    def hash_key(self, key: str) -> str:
        """Digest a derived key into a hex string of 2 * digest_size chars."""
        return hashlib.sha256(key.encode("utf-8")).hexdigest()[: self.digest_size * 2]

    def key_for(
        self,
        entity_type: str,
        operation: str,
        args: Sequence[Any] = (),
        kwargs: Optional[Dict[str, Any]] = None,
    ) -> Tuple[str, str]:
        """Return (key, hash) for a call."""
        key = self.derive_key(entity_type, operation, args, kwargs)
        digest = self.hash_key(key)
        logger.debug(f"Derived key hash={digest} for {entity_type}.{operation}")
        return key, digest


def _qualname(obj: Any) -> str:
    module = getattr(obj, "__module__", None) or "?"
    name = getattr(obj, "__qualname__", None) or getattr(obj, "__name__", None) or type(obj).__name__
    return f"{module}.{name}"


def _identity(obj: Any) -> str:
    """
    Tag an object with a serial number that is never handed out twice.

    Unlike ``id()``, a serial is not recycled when its object is freed.
    Objects that cannot be weakly referenced keep their ``id()``.
    """
    marker = id(obj)
    known = _serials.get(marker)
    if known is not None and known[0]() is obj:
        return f"#{known[1]}"
    try:
        ref = weakref.ref(obj, functools.partial(_forget, marker))
    except TypeError:
        return f"0x{marker:x}"
    serial = next(_counter)
    _serials[marker] = (ref, serial)
    return f"#{serial}"


def _forget(marker: int, ref: "weakref.ref") -> None:
    known = _serials.get(marker)
    if known is not None and known[0] is ref:
        del _serials[marker]


def _render_routine(value: Any) -> str:
    owner = getattr(value, "__self__", None)
    func = getattr(value, "__func__", None)
    if func is not None and owner is not None:
        # Bound methods are recreated on every attribute access
        return f"<method {_qualname(func)} of {_identity(owner)}>"
    if owner is not None and not inspect.ismodule(owner):
        # Builtin methods such as ``[].append``
        return f"<method {_qualname(value)} of {_identity(owner)}>"
    return f"<function {_qualname(value)} {_identity(value)}>"


def _render(value: Any, seen: Set[int]) -> str:
    if type(value) in _SCALARS:
        return repr(value)
    if isinstance(value, enum.Enum):
        return f"<{_qualname(type(value))}.{value.name}>"
    if isinstance(value, type):
        return f"<class {_qualname(value)} {_identity(value)}>"
    if inspect.isroutine(value):
        return _render_routine(value)

    marker = id(value)
    if marker in seen:
        return "<Circular>"
    seen.add(marker)
    try:
        return _render_compound(value, seen)
    finally:
        seen.discard(marker)


def _render_compound(value: Any, seen: Set[int]) -> str:
    kind = type(value)
    prefix = "" if kind in (dict, list, tuple, set, frozenset) else _qualname(kind)

    if isinstance(value, Mapping):
        items = ", ".join(f"{_render(k, seen)}: {_render(v, seen)}" for k, v in value.items())
        return f"{prefix}{{{items}}}"
    if isinstance(value, list):
        return f"{prefix}[{', '.join(_render(item, seen) for item in value)}]"
    if isinstance(value, tuple):
        items = [_render(item, seen) for item in value]
        if len(items) == 1:
            return f"{prefix}({items[0]},)"
        return f"{prefix}({', '.join(items)})"
    if isinstance(value, (set, frozenset)):
        label = prefix or kind.__name__
        return f"{label}{{{', '.join(sorted(_render(item, seen) for item in value))}}}"
    if isinstance(value, _SCALARS):
        # Subclasses of builtins, e.g. str-based identifiers
        base = next(klass for klass in kind.__mro__ if klass in _SCALARS)
        return f"{_qualname(kind)}({repr(base(value))})"
    if dataclasses.is_dataclass(value):
        fields = ", ".join(
            f"{field.name}={_render(getattr(value, field.name), seen)}"
            for field in dataclasses.fields(value)
        )
        return f"{_qualname(kind)}({fields})"
    attrs = _attributes(value)
    if attrs:
        # State first: a custom __repr__ may leave parts of it out
        rendered = ", ".join(f"{name}={_render(attr, seen)}" for name, attr in attrs.items())
        return f"{_qualname(kind)}({rendered})"
    if kind.__repr__ is object.__repr__:
        return f"{_qualname(kind)}({_identity(value)})"
    return repr(value)


def _attributes(value: Any) -> Dict[str, Any]:
    attrs: Dict[str, Any] = {}
    for klass in reversed(type(value).__mro__):
        slots = getattr(klass, "__slots__", ())
        if isinstance(slots, str):
            slots = (slots,)
        for slot in slots:
            if isinstance(slot, str) and slot not in ("__dict__", "__weakref__") and hasattr(value, slot):
                attrs[slot] = getattr(value, slot)
    instance_dict = getattr(value, "__dict__", None)
    if isinstance(instance_dict, dict):
        attrs.update(instance_dict)
    return attrs


_default_codec = KeyCodec()


def derive_key(
    entity_type: str,
    operation: str,
    args: Sequence[Any] = (),
    kwargs: Optional[Dict[str, Any]] = None,
) -> str:
    return _default_codec.derive_key(entity_type, operation, args, kwargs)


def hash_key(key: str) -> str:
    return _default_codec.hash_key(key)

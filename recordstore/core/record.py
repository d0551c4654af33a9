"""
Record definitions.

A :class:`Record` is the unit stored in a collection. The collection only
relies on a small capability surface:

- ``identity()``: a structural checksum token
- ``get(field)`` / ``set(field, value)``: named field access
- ``on_field_updated(handler)`` / ``on_field_removed(handler)``: change hooks
- ``serialize()``: plain structured data

Raw mappings are accepted too (when a collection has no record factory);
the module-level accessors below give both shapes the same interface.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass
from typing import (
    Any,
    Callable,
    Dict,
    Iterator,
    List,
    Mapping,
    Optional,
    Type,
)

from ..utils.serialization import fingerprint
from .exceptions import InvalidRecordPayload


class _Missing:
    """Sentinel type for an absent field value."""
    
    _instance: Optional["_Missing"] = None
    
    def __new__(cls) -> "_Missing":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance
    
    def __bool__(self) -> bool:
        return False
    
    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


@dataclass(frozen=True)
class FieldChange:
    """A single field mutation, as delivered to change handlers."""
    
    field: str
    old: Any = MISSING
    new: Any = MISSING
    
    @property
    def removed(self) -> bool:
        """True when the field was deleted from the record."""
        return self.new is MISSING


FieldHandler = Callable[[FieldChange], None]


class Record:
    """
    A mutable record with change notifications and a structural checksum.
    
    Subclasses may declare a schema through ``fields`` (field name ->
    default value) and the name of their identifier field through
    ``id_attribute``.
    
    Example:
        >>> Person = Record.define("Person", {"fname": None, "lname": None})
        >>> person = Person(fname="John", lname="Doe")
        >>> person.lname = "Smith"     # notifies on_field_updated handlers
        >>> person.identity()          # checksum of the current data
    """
    
    fields: Dict[str, Any] = {}
    id_attribute: str = "id"
    
    def __init__(self, data: Optional[Mapping[str, Any]] = None, **kwargs: Any):
        if data is not None and not isinstance(data, Mapping):
            raise InvalidRecordPayload(
                f"Record data must be a mapping, got {type(data).__name__}"
            )
        
        values: Dict[str, Any] = {
            name: copy.deepcopy(default) for name, default in self.fields.items()
        }
        values.update(data or {})
        values.update(kwargs)
        
        for key in values:
            if not isinstance(key, str):
                raise InvalidRecordPayload(
                    f"Record field names must be strings, got {type(key).__name__}"
                )
        
        object.__setattr__(self, "_data", values)
        object.__setattr__(self, "_update_handlers", [])
        object.__setattr__(self, "_remove_handlers", [])
    
    # =========================================================================
    # FACTORY
    # =========================================================================
    
    @classmethod
    def define(
        cls,
        name: str,
        fields: Mapping[str, Any],
        id_attribute: str = "id",
    ) -> Type["Record"]:
        """Create a Record subclass with the given schema."""
        return type(
            name,
            (cls,),
            {"fields": dict(fields), "id_attribute": id_attribute},
        )
    
    # =========================================================================
    # CAPABILITY
    # =========================================================================
    
    def identity(self) -> str:
        """Structural checksum of the record's current data."""
        return fingerprint(self._data)
    
    @property
    def checksum(self) -> str:
        return self.identity()
    
    def get(self, field: str, default: Any = MISSING) -> Any:
        return self._data.get(field, default)
    
    def has(self, field: str) -> bool:
        return field in self._data
    
    def set(self, field: str, value: Any) -> None:
        """
        Set a field value, notifying update handlers when it changes.
        """
        old = self._data.get(field, MISSING)
        if old is not MISSING and old == value:
            return
        self._data[field] = value
        self._notify(self._update_handlers, FieldChange(field, old, value))
    
    def delete(self, field: str) -> None:
        """Remove a field, notifying removal handlers."""
        if field not in self._data:
            return
        old = self._data.pop(field)
        self._notify(self._remove_handlers, FieldChange(field, old, MISSING))
    
    def serialize(self) -> Dict[str, Any]:
        """Deep copy of the record's data."""
        return copy.deepcopy(self._data)
    
    def on_field_updated(self, handler: FieldHandler) -> Callable[[], None]:
        """
        Register a handler for field updates.
        
        Returns:
            A callable that detaches the handler
        """
        return self._subscribe(self._update_handlers, handler)
    
    def on_field_removed(self, handler: FieldHandler) -> Callable[[], None]:
        """
        Register a handler for field removals.
        
        Returns:
            A callable that detaches the handler
        """
        return self._subscribe(self._remove_handlers, handler)
    
    # =========================================================================
    # INTERNALS
    # =========================================================================
    
    @staticmethod
    def _subscribe(
        handlers: List[FieldHandler],
        handler: FieldHandler,
    ) -> Callable[[], None]:
        handlers.append(handler)
        
        def detach() -> None:
            if handler in handlers:
                handlers.remove(handler)
        
        return detach
    
    @staticmethod
    def _notify(handlers: List[FieldHandler], change: FieldChange) -> None:
        for handler in list(handlers):
            handler(change)
    
    # =========================================================================
    # PYTHON PROTOCOLS
    # =========================================================================
    
    def __getattr__(self, name: str) -> Any:
        # Only reached when normal attribute lookup fails
        data = self.__dict__.get("_data")
        if data is not None and name in data:
            return data[name]
        raise AttributeError(
            f"'{type(self).__name__}' record has no field '{name}'"
        )
    
    def __setattr__(self, name: str, value: Any) -> None:
        if name.startswith("_"):
            object.__setattr__(self, name, value)
        else:
            self.set(name, value)
    
    def __delattr__(self, name: str) -> None:
        if name not in self._data:
            raise AttributeError(name)
        self.delete(name)
    
    def __getitem__(self, field: str) -> Any:
        return self._data[field]
    
    def __setitem__(self, field: str, value: Any) -> None:
        self.set(field, value)
    
    def __delitem__(self, field: str) -> None:
        if field not in self._data:
            raise KeyError(field)
        self.delete(field)
    
    def __contains__(self, field: object) -> bool:
        return field in self._data
    
    def __iter__(self) -> Iterator[str]:
        return iter(self._data)
    
    def __len__(self) -> int:
        return len(self._data)
    
    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._data!r})"


RecordFactory = Callable[[Mapping[str, Any]], Any]


# =============================================================================
# ACCESSORS FOR RECORDS AND RAW MAPPINGS
# =============================================================================

def is_record(value: Any) -> bool:
    return isinstance(value, Record)


def get_field(record: Any, field: str) -> Any:
    """Field value of a record or raw mapping, or ``MISSING``."""
    if isinstance(record, Record):
        return record.get(field)
    if isinstance(record, Mapping):
        return record.get(field, MISSING)
    return getattr(record, field, MISSING)


def has_field(record: Any, field: str) -> bool:
    return get_field(record, field) is not MISSING


def identity_of(record: Any) -> str:
    """Identity token of a record, or the checksum of a raw mapping."""
    if isinstance(record, Record):
        return record.identity()
    identity = getattr(record, "identity", None)
    if callable(identity):
        return identity()
    return fingerprint(serialize_record(record))


def serialize_record(record: Any) -> Dict[str, Any]:
    """Plain data of a record or raw mapping."""
    if isinstance(record, Record):
        return record.serialize()
    if isinstance(record, Mapping):
        return copy.deepcopy(dict(record))
    serialize = getattr(record, "serialize", None)
    if callable(serialize):
        return serialize()
    raise InvalidRecordPayload(
        f"Cannot serialize record of type {type(record).__name__}"
    )


def id_attribute_of(record: Any, default: str = "id") -> str:
    return getattr(type(record), "id_attribute", None) or default


def schema_of(factory: Optional[RecordFactory]) -> Optional[Dict[str, Any]]:
    """Declared field schema of a record factory, if it has one."""
    if factory is None:
        return None
    fields = getattr(factory, "fields", None)
    if isinstance(fields, Mapping) and fields:
        return dict(fields)
    return None

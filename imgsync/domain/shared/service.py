"""Base class for stateless domain services."""

from dataclasses import dataclass
from typing import dataclass_transform


@dataclass_transform(eq_default=False)
class _ServiceType(type):
    """Turns every Service subclass into a dataclass over its collaborators."""

    def __new__(mcs, name: str, bases: tuple, namespace: dict):
        cls = super().__new__(mcs, name, bases, namespace)
        if not any(isinstance(base, mcs) for base in bases):
            return cls
        # Services hold ports and coordinators; equality stays identity-based
        return dataclass(cls, eq=False)


class Service(metaclass=_ServiceType):
    """Declare collaborators as annotated fields; the DI container fills them in."""

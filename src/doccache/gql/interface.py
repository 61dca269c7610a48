"""Configured custom interfaces and the policy that attaches them to types."""

from __future__ import annotations

from collections.abc import Iterable, Iterator

from doccache.core.logging import get_logger
from doccache.gql.field import Widens
from doccache.gql.types import SimplifiedInterface, SimplifiedType

logger = get_logger(__name__)


class SimplifiedInterfaces:
    """Ordered ``name -> SimplifiedInterface`` registry.

    Interfaces are applied in configuration order so that the resulting
    ``implements`` clause is deterministic.
    """

    def __init__(self, interfaces: Iterable[SimplifiedInterface] = ()):
        self._interfaces: dict[str, SimplifiedInterface] = {}
        for interface in interfaces:
            self.put(interface)

    def put(self, interface: SimplifiedInterface) -> None:
        self._interfaces[interface.name] = interface

    def get(self, name: str) -> SimplifiedInterface | None:
        return self._interfaces.get(name)

    def has_interface(self, name: str) -> bool:
        return name in self._interfaces

    def names(self) -> list[str]:
        return list(self._interfaces)

    def __iter__(self) -> Iterator[SimplifiedInterface]:
        return iter(self._interfaces.values())

    def __len__(self) -> int:
        return len(self._interfaces)

    def __contains__(self, name: object) -> bool:
        return name in self._interfaces

    def apply_interfaces(
        self,
        new_type: SimplifiedType,
        old_type: SimplifiedType | None,
        widens: Widens,
    ) -> None:
        """Attach interfaces to ``new_type``.

        A brand new type gets every interface it qualifies for. An existing
        type only gets the configured interfaces it already implements, so
        its interface set is stable across documents of varying shape.
        """
        if old_type is not None:
            for name in old_type.interfaces:
                # Document and interfaces no longer configured are skipped
                interface = self._interfaces.get(name)
                if interface is not None:
                    new_type.add_interface(interface, widens)
            return

        for interface in self._interfaces.values():
            if interface.should_implement(new_type):
                logger.info("interface_attached", type=new_type.name, interface=interface.name)
                new_type.add_interface(interface, widens)

    def interfaces_for(self, type_name: str) -> list[SimplifiedInterface]:
        """Interfaces that explicitly list ``type_name`` as applicable."""
        return [i for i in self._interfaces.values() if type_name in i.types]


__all__ = ["SimplifiedInterfaces"]

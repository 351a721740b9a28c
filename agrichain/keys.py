# -*- coding: utf-8 -*-
"""
AgriChain Key Codec - world-state key derivation.

Pure, deterministic functions that locate records in world state:

    namespaced (default)      flat (legacy ledgers)
    product:<id>              <id>
    farmer:<id>               <id>
    cert:<id>                 <id>

In flat mode all kinds share one key space and ids must never collide
across kinds. Step identifiers are ``<productID>-<ordinal>`` in both modes;
they name steps inside a product record and are never world-state keys.

Example:
    >>> codec = KeyCodec()
    >>> codec.entity_key(EntityKind.PRODUCT, "P1")
    'product:P1'
    >>> KeyCodec.step_id("P1", 0)
    'P1-0'
"""

from __future__ import annotations

from typing import Dict, Optional, Union

from agrichain.exceptions import ValidationError
from agrichain.models import EntityKind

KEY_PREFIXES: Dict[EntityKind, str] = {
    EntityKind.PRODUCT: "product:",
    EntityKind.FARMER: "farmer:",
    EntityKind.CERTIFICATE: "cert:",
}


class KeyCodec:
    """Derives world-state keys for entities.

    Attributes:
        namespaced: Whether keys are prefixed by entity kind.
    """

    def __init__(self, namespaced: bool = True) -> None:
        self.namespaced = namespaced

    def entity_key(self, kind: Union[EntityKind, str], entity_id: str) -> str:
        """Return the world-state key for one entity.

        Args:
            kind: Entity kind.
            entity_id: Caller-supplied identifier.

        Returns:
            World-state key.

        Raises:
            ValidationError: If the identifier is empty.
        """
        kind = EntityKind(kind)
        if not entity_id:
            raise ValidationError(
                message=f"{kind.value} id must not be empty",
                entity_kind=kind.value,
                entity_id=entity_id,
            )
        if not self.namespaced:
            return entity_id
        return f"{KEY_PREFIXES[kind]}{entity_id}"

    def kind_of(self, key: str) -> Optional[EntityKind]:
        """Return the entity kind encoded in a key, if any.

        Flat keys carry no kind and always return None.
        """
        if not self.namespaced:
            return None
        for kind, prefix in KEY_PREFIXES.items():
            if key.startswith(prefix):
                return kind
        return None

    def id_of(self, key: str) -> str:
        """Strip the kind prefix from a key."""
        kind = self.kind_of(key)
        if kind is None:
            return key
        return key[len(KEY_PREFIXES[kind]):]

    def kind_prefix(self, kind: Union[EntityKind, str]) -> str:
        """Return the key prefix shared by every key of one kind.

        In flat mode the prefix is empty and matches the whole key space.
        """
        if not self.namespaced:
            return ""
        return KEY_PREFIXES[EntityKind(kind)]

    @staticmethod
    def step_id(product_id: str, ordinal: int) -> str:
        """Return the identifier of a product's supply chain step.

        Args:
            product_id: Owning product identifier.
            ordinal: Step count before the append.
        """
        if ordinal < 0:
            raise ValueError(f"ordinal must be >= 0, got {ordinal}")
        return f"{product_id}-{ordinal}"


__all__ = [
    "KEY_PREFIXES",
    "KeyCodec",
]

"""
Record identities.

Every record has two possible identities:
- ClientId: generated locally when the record is constructed, always present
- DurableId: the ``id`` attribute assigned by an external authority, may be absent

Relationship matching must know which of the two a foreign key refers to.
In memory that is carried by the type; in persisted JSON it is carried by the
reserved client id prefix, decoded with parse_identity().

Invariants:
    - A ClientId never equals a DurableId, even with the same raw value
    - Generated client ids are unique within a process
    - Unset foreign keys (None, "", 0, False) decode to None, never to an identity
"""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from typing import Any, Optional, Union

DEFAULT_CLIENT_ID_PREFIX = "rdbClientId"


@dataclass(frozen=True)
class ClientId:
    """Locally generated identity.

    Attributes:
        value: Full string form, including the reserved prefix
    """

    value: str

    def __str__(self) -> str:
        return self.value


@dataclass(frozen=True)
class DurableId:
    """Primary key assigned by an external authority.

    Attributes:
        value: Raw id value as stored in the ``id`` attribute
    """

    value: Any

    def __str__(self) -> str:
        return str(self.value)


Identity = Union[ClientId, DurableId]


def generate_client_id(model_name: str, prefix: str = DEFAULT_CLIENT_ID_PREFIX) -> ClientId:
    """Generate a new client id for a record of ``model_name``.

    The token is a random version-4 UUID behind the reserved prefix, so it
    is unique across models as well.

    Args:
        model_name: Model the id is generated for
        prefix: Reserved prefix marking client-generated ids

    Returns:
        New ClientId

    Example:
        >>> generate_client_id("owner").value.startswith("rdbClientId")
        True
    """
    if not model_name:
        raise ValueError("model_name cannot be empty")
    return ClientId(f"{prefix}{uuid.uuid4()}")


def is_client_id(value: Any, prefix: str = DEFAULT_CLIENT_ID_PREFIX) -> bool:
    """Whether a raw stored value is a client-generated id."""
    return isinstance(value, str) and value.startswith(prefix)


def parse_identity(value: Any, prefix: str = DEFAULT_CLIENT_ID_PREFIX) -> Optional[Identity]:
    """Decode a raw foreign key value into an Identity.

    Args:
        value: Value read from a record attribute (or an Identity already)
        prefix: Reserved prefix marking client-generated ids

    Returns:
        ClientId, DurableId, or None if the value is unset
    """
    if isinstance(value, (ClientId, DurableId)):
        return value
    if not value:
        return None
    if is_client_id(value, prefix):
        return ClientId(value)
    return DurableId(value)


def encode_identity(identity: Identity) -> Any:
    """Raw value to store in a foreign key attribute for ``identity``."""
    return identity.value

from dataclasses import dataclass
from uuid import UUID


@dataclass(frozen=True)
class ActorContext:
    """The caller of an operation, resolved once by the auth layer.

    ``is_admin`` travels with the actor so access decisions never consult a
    session global.
    """

    account_id: UUID
    is_admin: bool = False

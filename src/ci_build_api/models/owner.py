"""Tagged reference to the account that owns a request or build."""

from dataclasses import dataclass

from ci_build_api.models.enums import OwnerKind


@dataclass(frozen=True)
class OwnerRef:
    """A user or organization, identified by kind and id."""

    kind: OwnerKind
    id: int

    @classmethod
    def from_columns(cls, kind: str | None, owner_id: int | None) -> "OwnerRef | None":
        if kind is None or owner_id is None:
            return None
        return cls(kind=OwnerKind(kind), id=owner_id)


class OwnedMixin:
    """Stores an OwnerRef as an (owner_type, owner_id) column pair.

    Subclasses declare the two columns; this only adds the accessor.
    """

    @property
    def owner(self) -> OwnerRef | None:
        return OwnerRef.from_columns(self.owner_type, self.owner_id)

    @owner.setter
    def owner(self, value: OwnerRef | None) -> None:
        if value is None:
            self.owner_type = None
            self.owner_id = None
        else:
            self.owner_type = OwnerKind(value.kind).value
            self.owner_id = value.id

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Mapping, Optional, Tuple

from .errors import ValidationError
from .models import PRIORITIES, STATUSES

_FIELDS = ("status", "priority", "assigned_to")


# PUBLIC_INTERFACE
@dataclass(frozen=True)
class FilterQuery:
    """
    Equality filters for a full refresh from the remote store.
    Every provided field must match (AND); omitted fields are not filtered.
    """

    status: Optional[str] = None
    priority: Optional[str] = None
    assigned_to: Optional[str] = None

    def __post_init__(self) -> None:
        if self.status is not None and self.status not in STATUSES:
            raise ValidationError(f"status must be one of {', '.join(STATUSES)}")
        if self.priority is not None and self.priority not in PRIORITIES:
            raise ValidationError(f"priority must be one of {', '.join(PRIORITIES)}")

    def predicates(self) -> List[Tuple[str, str]]:
        """Return the (field, value) pairs that take part in filtering."""
        return [(name, getattr(self, name)) for name in _FIELDS if getattr(self, name) is not None]

    def matches(self, record: Mapping[str, Any]) -> bool:
        # A record lacking the field (or holding None) never equals a provided value.
        return all(record.get(name) == value for name, value in self.predicates())

    def as_params(self) -> Dict[str, str]:
        """Query string parameters for the REST list endpoint."""
        return dict(self.predicates())

    @property
    def is_empty(self) -> bool:
        return not self.predicates()

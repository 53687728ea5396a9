"""
Participant Identity Resolver

A participant can be referenced three ways depending on where the reference
was written:
- StableRef: the canonical reference (uuid, else account id, else str(ordinal))
- OrdinalRef: the participant row id, only meaningful inside one match roster
- AccountRef: the authenticated account id of a registered player

Resolution precedence for a row carrying several candidate fields:
    1. by_uuid, when it equals a known stable reference
    2. by_ordinal_id, when it belongs to the roster
    3. by_account_id, when it belongs to the roster
    4. unresolved (None)

Unresolved references never raise; callers exclude them from tallies.
"""
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Optional, Set, Union


@dataclass(frozen=True)
class StableRef:
    value: str


@dataclass(frozen=True)
class OrdinalRef:
    value: int


@dataclass(frozen=True)
class AccountRef:
    value: str


ParticipantRef = Union[StableRef, OrdinalRef, AccountRef]


def stable_ref_for(participant_id: Optional[int], uuid: Optional[str], account_id: Optional[str]) -> Optional[str]:
    """uuid ?? account id ?? str(ordinal id)"""
    if uuid:
        return uuid
    if account_id:
        return account_id
    if participant_id is not None:
        return str(participant_id)
    return None


@dataclass(frozen=True)
class RosterEntry:
    participant_id: int
    uuid: Optional[str] = None
    account_id: Optional[str] = None

    @property
    def stable_ref(self) -> str:
        return stable_ref_for(self.participant_id, self.uuid, self.account_id)


def parse_reference(value: Any, account: bool = False) -> Optional[ParticipantRef]:
    """
    Tag a raw candidate value exactly once at the boundary.

    With account=True the value comes from an account id field and is tagged
    AccountRef whatever its shape. Otherwise ints and digit-only strings are
    ordinals and other non-empty strings are stable references (they may
    still turn out to be account ids).
    """
    if value is None or isinstance(value, bool):
        return None
    if account:
        text = str(value).strip() if isinstance(value, (str, int)) else ""
        return AccountRef(text) if text else None
    if isinstance(value, int):
        return OrdinalRef(value)
    if isinstance(value, float):
        return OrdinalRef(int(value)) if value.is_integer() else None
    if isinstance(value, str):
        text = value.strip()
        if not text:
            return None
        if text.isdigit():
            return OrdinalRef(int(text))
        return StableRef(text)
    return None


class IdentityResolver:
    """
    Lookup maps built from one match roster.

    Built once per computation; resolution is pure dictionary work.
    """

    def __init__(self, roster: Iterable[RosterEntry]):
        self._known_refs: Set[str] = set()
        self._ref_by_account: Dict[str, str] = {}
        self._ref_by_ordinal: Dict[int, str] = {}
        self._ordinal_by_ref: Dict[str, int] = {}

        for entry in roster:
            ref = entry.stable_ref
            self._known_refs.add(ref)
            self._ref_by_ordinal[entry.participant_id] = ref
            self._ordinal_by_ref[ref] = entry.participant_id
            if entry.account_id:
                self._ref_by_account[entry.account_id] = ref

    @classmethod
    def from_participants(cls, participants: Iterable[Any]) -> "IdentityResolver":
        """Build from ORM Participant rows (or anything with id/uuid/account_id)."""
        return cls(
            RosterEntry(
                participant_id=p.id,
                uuid=getattr(p, "uuid", None),
                account_id=getattr(p, "account_id", None),
            )
            for p in participants
        )

    @property
    def known_refs(self) -> Set[str]:
        return set(self._known_refs)

    def __len__(self) -> int:
        return len(self._known_refs)

    def resolve(
        self,
        by_uuid: Optional[str] = None,
        by_ordinal_id: Any = None,
        by_account_id: Optional[str] = None,
    ) -> Optional[str]:
        if by_uuid and by_uuid in self._known_refs:
            return by_uuid

        ordinal = _as_ordinal(by_ordinal_id)
        if ordinal is not None and ordinal in self._ref_by_ordinal:
            return self._ref_by_ordinal[ordinal]

        if by_account_id and by_account_id in self._ref_by_account:
            return self._ref_by_account[by_account_id]

        return None

    def resolve_ref(self, ref: Optional[ParticipantRef]) -> Optional[str]:
        if ref is None:
            return None
        if isinstance(ref, OrdinalRef):
            return self.resolve(by_ordinal_id=ref.value)
        if isinstance(ref, AccountRef):
            return self.resolve(by_account_id=ref.value)
        # A free-form string may be a uuid or an account id
        return self.resolve(by_uuid=ref.value, by_account_id=ref.value)

    def resolve_value(self, value: Any) -> Optional[str]:
        ref = parse_reference(value)
        if isinstance(ref, OrdinalRef) and isinstance(value, str):
            # Digit-only text may be an account id; ordinal still takes precedence
            return self.resolve(by_ordinal_id=ref.value, by_account_id=value.strip())
        return self.resolve_ref(ref)

    def resolve_account(self, value: Any) -> Optional[str]:
        """Resolve a value read from an account id field."""
        return self.resolve_ref(parse_reference(value, account=True))

    def ordinal_for(self, value: Any) -> Optional[int]:
        """Normalize any candidate shape to the roster ordinal id used for tallying."""
        if isinstance(value, str) and value in self._ordinal_by_ref:
            return self._ordinal_by_ref[value]
        ref = self.resolve_value(value)
        if ref is None:
            return None
        return self._ordinal_by_ref.get(ref)

    def ref_for_ordinal(self, ordinal: int) -> Optional[str]:
        return self._ref_by_ordinal.get(ordinal)


def _as_ordinal(value: Any) -> Optional[int]:
    ref = parse_reference(value)
    if isinstance(ref, OrdinalRef):
        return ref.value
    return None

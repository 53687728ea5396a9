from .clock import Clock, FixedClock, SystemClock, system_clock
from .identity import (
    AccountRef,
    IdentityResolver,
    OrdinalRef,
    ParticipantRef,
    RosterEntry,
    StableRef,
    parse_reference,
    stable_ref_for,
)
from .randomness import PythonRandomSource, RandomSource, ScriptedRandomSource, default_random

__all__ = [
    "AccountRef",
    "Clock",
    "FixedClock",
    "IdentityResolver",
    "OrdinalRef",
    "ParticipantRef",
    "PythonRandomSource",
    "RandomSource",
    "RosterEntry",
    "ScriptedRandomSource",
    "StableRef",
    "SystemClock",
    "default_random",
    "parse_reference",
    "stable_ref_for",
    "system_clock",
]

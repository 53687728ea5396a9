"""
Match CLI Commands

Operator entry points for the external triggers of the engine.
"""
import asyncio
import json
from typing import Any, Callable, Optional

from matchday.database import build_engine, init_models
from matchday.exceptions import MatchdayError
from matchday.services.finalize_service import finalize_if_complete
from matchday.services.rating_closer import close_voting
from matchday.services.reveal_scheduler import deliver_due_notifications, release_results_if_due
from matchday.services.snapshot_service import ensure_outcome_snapshot, ensure_participants_snapshot
from matchday.services.store import MatchStore


class MatchCommand:
    """Match CLI command handler."""

    def __init__(self, database_url: Optional[str] = None, dry_run: bool = False):
        self.database_url = database_url
        self.dry_run = dry_run

    def execute(self, args) -> int:
        """Execute match command."""
        actions = {
            "init-db": self._init_db,
            "close-voting": self._close_voting,
            "finalize": self._finalize,
            "release": self._release,
            "snapshot": self._snapshot,
            "deliver": self._deliver,
        }
        action = actions.get(args.command)
        if action is None:
            print("Error: Unknown command")
            return 1

        if self.dry_run:
            target = f" for match {args.match}" if getattr(args, "match", None) else ""
            print(f"[DRY RUN] Would run {args.command}{target}")
            return 0

        try:
            return asyncio.run(self._with_store(action, args))
        except MatchdayError as e:
            print(f"Error [{e.code}]: {e.message}")
            return 1

    async def _with_store(self, action: Callable, args) -> int:
        engine = build_engine(self.database_url)
        try:
            return await action(MatchStore(engine), args)
        finally:
            await engine.dispose()

    def _print(self, title: str, payload: Any) -> None:
        print(f"=== {title} ===")
        if hasattr(payload, "model_dump"):
            payload = payload.model_dump(mode="json")
        print(json.dumps(payload, indent=2, sort_keys=True, default=str))

    async def _init_db(self, store: MatchStore, args) -> int:
        await init_models(store.engine)
        print("Tables ready")
        return 0

    async def _close_voting(self, store: MatchStore, args) -> int:
        report = await close_voting(store, args.match)
        self._print(f"Close Voting {args.match}", report)
        return 0

    async def _finalize(self, store: MatchStore, args) -> int:
        outcome = await finalize_if_complete(store, args.match, fast=args.fast)
        self._print(f"Finalize {args.match}", outcome)
        return 0 if outcome.status != "incomplete" else 2

    async def _release(self, store: MatchStore, args) -> int:
        outcome = await release_results_if_due(store, args.match)
        self._print(f"Release {args.match}", outcome)
        return 0

    async def _snapshot(self, store: MatchStore, args) -> int:
        outcomes = []
        if args.kind in ("participants", "all"):
            outcomes.append(await ensure_participants_snapshot(store, args.match))
        if args.kind in ("outcome", "all"):
            outcomes.append(await ensure_outcome_snapshot(store, args.match, reason=args.reason))
        self._print(f"Snapshot {args.match}", [o.model_dump(mode="json") for o in outcomes])
        return 1 if any(o.reason == "failed" for o in outcomes) else 0

    async def _deliver(self, store: MatchStore, args) -> int:
        delivered = await deliver_due_notifications(store)
        self._print("Deliver", {"delivered": delivered})
        return 0

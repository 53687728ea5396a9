"""
Shared fixtures: a fresh file-backed SQLite database per test, a fixed
clock two hours before kick-off, and a four-player roster:

    ana   uuid u-ana   account acct-ana    (stable ref u-ana)
    beto  uuid u-beto  account acct-beto   (stable ref u-beto)
    caro  no uuid      account acct-caro   (stable ref acct-caro)
    guest uuid u-guest no account          (stable ref u-guest)
"""
from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest
import pytest_asyncio

from matchday.core.clock import FixedClock
from matchday.database import build_engine, init_models
from matchday.services.store import MatchStore
from matchday.services.survey_service import submit_survey

KICKOFF = datetime(2026, 3, 14, 20, 0, 0)


@pytest.fixture
def clock() -> FixedClock:
    return FixedClock(KICKOFF - timedelta(hours=2))


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'matchday.db'}")
    await init_models(engine)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def store(engine) -> MatchStore:
    return MatchStore(engine)


@pytest_asyncio.fixture
async def match(store):
    return await store.create_match(
        starts_at=KICKOFF,
        name="Jueves 5v5",
        venue="Cancha 3",
        capacity=10,
        creator_ref="admin-1",
    )


@pytest_asyncio.fixture
async def roster(store, match) -> SimpleNamespace:
    ana = await store.add_participant(match.id, uuid="u-ana", account_id="acct-ana", display_name="Ana")
    beto = await store.add_participant(match.id, uuid="u-beto", account_id="acct-beto", display_name="Beto")
    caro = await store.add_participant(match.id, account_id="acct-caro", display_name="Caro")
    guest = await store.add_participant(match.id, uuid="u-guest", display_name="Invitado")
    return SimpleNamespace(ana=ana, beto=beto, caro=caro, guest=guest, all=[ana, beto, caro, guest])


@pytest.fixture
def survey(store, match):
    """Submit an outcome survey for the match fixture."""
    async def _submit(voter_ref, a=None, b=None, dirty=(), absent=()):
        return await submit_survey(store, {
            "match_id": match.id,
            "voter_ref": voter_ref,
            "best_player_a": a,
            "best_player_b": b,
            "dirty_nominees": list(dirty),
            "absent_nominees": list(absent),
        })
    return _submit

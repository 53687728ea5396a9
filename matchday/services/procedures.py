"""
Remote Procedure Gateway

Named server-side operations the engine may call when a deployment provides
them:
- compute_match_awards(match_id=...) -> dict of winners
- enqueue_match_notification(match_id=..., ...) -> number of rows queued

A name that is not registered raises CapabilityUnavailableError; a
procedure that raises or exceeds the timeout raises ProcedureFailedError.
Callers treat both as "use the next fallback".
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from matchday.config import EngineSettings
from matchday.exceptions import CapabilityUnavailableError, ProcedureFailedError

logger = logging.getLogger(__name__)

COMPUTE_MATCH_AWARDS = "compute_match_awards"
ENQUEUE_MATCH_NOTIFICATION = "enqueue_match_notification"

Procedure = Callable[..., Awaitable[Any]]


class ProcedureGateway:
    def __init__(self, timeout: Optional[float] = None):
        self.timeout = timeout if timeout is not None else EngineSettings.PROCEDURE_TIMEOUT_SECONDS
        self._procedures: Dict[str, Procedure] = {}

    def register(self, name: str, procedure: Procedure) -> None:
        self._procedures[name] = procedure

    def unregister(self, name: str) -> None:
        self._procedures.pop(name, None)

    def available(self, name: str) -> bool:
        return name in self._procedures

    async def call(self, name: str, **kwargs) -> Any:
        procedure = self._procedures.get(name)
        if procedure is None:
            raise CapabilityUnavailableError(name)

        try:
            return await asyncio.wait_for(procedure(**kwargs), timeout=self.timeout)
        except asyncio.TimeoutError:
            raise ProcedureFailedError(name, f"timed out after {self.timeout}s")
        except (CapabilityUnavailableError, ProcedureFailedError):
            raise
        except Exception as e:
            raise ProcedureFailedError(name, str(e)) from e

"""
Post-checkout balance reconciliation for API clients.

After Stripe redirects back with ?success=true the webhook may not have been
processed yet. The poller re-reads the balance at a fixed interval until it
rises above the pre-payment value or the attempt ceiling is hit. It only
shortens perceived latency: crediting itself is done by the webhook and
verify-session paths.
"""

import asyncio
import enum
from dataclasses import dataclass
from typing import Awaitable, Callable
from urllib.parse import parse_qs, urlparse

import httpx

from cvpro.core.config import get_settings
from cvpro.core.logging import get_logger
from cvpro.core.retry import RetryPolicy, fixed_interval, retry_async

log = get_logger(__name__)

Probe = Callable[[], Awaitable[int]]


class PollerState(str, enum.Enum):
    IDLE = "idle"
    POLLING = "polling"
    RESOLVED = "resolved"
    GAVE_UP = "gave_up"


@dataclass(frozen=True)
class PaymentRedirect:
    session_id: str | None


@dataclass(frozen=True)
class PollOutcome:
    state: PollerState
    before: int
    latest: int
    attempts: int

    @property
    def credited(self) -> bool:
        return self.latest > self.before

    @property
    def message(self) -> str:
        if self.credited:
            return f"Payment successful! Credits updated: {self.before} → {self.latest}"
        return "Payment successful! Credits will appear shortly. (If not, reload once.)"


def detect_payment_redirect(url: str) -> PaymentRedirect | None:
    """Return the redirect marker when url is the checkout success return, else None."""
    query = parse_qs(urlparse(url).query)
    if query.get("success", [""])[0].lower() != "true":
        return None
    session_id = query.get("session_id", [""])[0] or None
    return PaymentRedirect(session_id=session_id)


def default_policy() -> RetryPolicy:
    s = get_settings()
    return RetryPolicy(max_attempts=s.poll_max_attempts, backoff=fixed_interval(s.poll_interval_seconds))


class _NotYetCredited(Exception):
    pass


class ReconciliationPoller:
    def __init__(
        self,
        probe: Probe,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.probe = probe
        self.policy = policy or default_policy()
        self._sleep = sleep
        self.state = PollerState.IDLE
        self.latest: int | None = None
        self.attempts = 0

    async def _attempt(self, before: int) -> int:
        self.attempts += 1
        balance = await self.probe()
        self.latest = balance
        if balance <= before:
            raise _NotYetCredited()
        return balance

    async def run(self, before: int) -> PollOutcome:
        if self.state is not PollerState.IDLE:
            raise RuntimeError("poller already ran")
        self.state = PollerState.POLLING
        self.latest = before
        try:
            await retry_async(lambda: self._attempt(before), self.policy, sleep=self._sleep, label="balance_poll")
        except _NotYetCredited:
            self.state = PollerState.GAVE_UP
        except Exception as e:
            # Probe failures on the last attempt end the loop like an unchanged balance
            log.warning("balance_poll_error", error=repr(e), attempts=self.attempts)
            self.state = PollerState.GAVE_UP
        else:
            self.state = PollerState.RESOLVED
        outcome = PollOutcome(state=self.state, before=before, latest=self.latest, attempts=self.attempts)
        log.info("balance_poll_done", state=outcome.state.value, before=before, latest=outcome.latest, attempts=outcome.attempts)
        return outcome


class BalanceProbe:
    """
    Reads the balance over HTTP. With a checkout session id it calls
    verify-session (which also credits a paid session the webhook has not
    reached yet); otherwise it reads /v1/account/balance.
    """

    def __init__(self, client: httpx.AsyncClient, account_id: str, session_id: str | None = None):
        self.client = client
        self.account_id = account_id
        self.session_id = session_id

    async def __call__(self) -> int:
        headers = {"X-User-Id": self.account_id}
        if self.session_id:
            resp = await self.client.post(
                "/v1/credits/verify-session", json={"session_id": self.session_id}, headers=headers
            )
        else:
            resp = await self.client.get("/v1/account/balance", headers=headers)
        resp.raise_for_status()
        return int(resp.json()["balance"])


async def reconcile_after_checkout(
    client: httpx.AsyncClient,
    account_id: str,
    before: int,
    return_url: str,
    policy: RetryPolicy | None = None,
) -> PollOutcome | None:
    """Run the poller if return_url is a checkout success redirect; None otherwise."""
    redirect = detect_payment_redirect(return_url)
    if redirect is None:
        return None
    poller = ReconciliationPoller(BalanceProbe(client, account_id, redirect.session_id), policy=policy)
    return await poller.run(before)

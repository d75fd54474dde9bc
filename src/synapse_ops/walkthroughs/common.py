# src/synapse_ops/walkthroughs/common.py
from __future__ import annotations

import asyncio
import logging
import sys
from typing import Awaitable, Callable

from synapse_ops.config import Settings
from synapse_ops.env import load_dotenv_if_present
from synapse_ops.errors import OpsError, PreconditionError
from synapse_ops.sdk import connect
from synapse_ops.sdk.client import ServiceApproval, SynapseClient
from synapse_ops.structured_logging import configure_structured_logging, log_event

log = logging.getLogger("synapse_ops.walkthroughs")

RULE = "=" * 70


async def build_client(settings: Settings) -> SynapseClient:
    """Live SDK client. Tests replace this attribute with one returning a FakeSynapse."""
    return await connect(settings)


def banner(title: str) -> None:
    print(RULE)
    print(f"  {title}")
    print(RULE)
    print()


def section(title: str) -> None:
    print(f"=== {title} ===")


async def require_funded(client: SynapseClient) -> int:
    balance = await client.payments.balance()
    if balance == 0:
        raise PreconditionError.unfunded(balance)
    return balance


async def require_operator_approval(client: SynapseClient) -> ServiceApproval:
    """Operator must be approved with non-zero rate and lockup allowances."""
    approval = await client.payments.service_approval(client.warm_storage_address())
    if not approval.is_approved or not approval.rate_allowance or not approval.lockup_allowance:
        raise PreconditionError.operator_not_approved()
    return approval


def run_main(entry: Callable[[], Awaitable[int]]) -> int:
    """Run one walkthrough coroutine and map failures to exit codes.

      0  success
      1  precondition failure, downstream failure, or anything unexpected
    """
    # .env may set SYNAPSE_OPS_LOG_LEVEL.
    load_dotenv_if_present()
    configure_structured_logging()

    try:
        return int(asyncio.run(entry()))
    except PreconditionError as e:
        print(f"\nError: {e.reason}", file=sys.stderr)
        if e.hint:
            print(f"  → {e.hint}", file=sys.stderr)
        log_event(log, "walkthrough_precondition_failed", level=logging.WARNING, code=e.code, reason=e.reason)
        return 1
    except OpsError as e:
        print(f"\nError: {e.reason}", file=sys.stderr)
        log_event(log, "walkthrough_failed", level=logging.ERROR, code=e.code, reason=e.reason)
        return 1
    except Exception as e:
        print(f"\nError: {e}", file=sys.stderr)
        log_event(log, "walkthrough_crashed", level=logging.ERROR, error=str(e), error_type=e.__class__.__name__)
        return 1

#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import dataclasses
import json
import logging
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from streampay_client.fraud_gate import FraudCheckClient, FraudGate, risk_band
from streampay_client.orchestrator import AttemptResult, AttemptStatus, CreationOrchestrator
from streampay_client.prefill import draft_from_preset
from streampay_client.settings import Settings, settings
from streampay_client.submitter import DryRunStreamSubmitter
from streampay_client.types import StreamDraft, StreamType
from streampay_client.wallet import resolve_sender_address


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Quote and create a fraud-checked payment stream (dry run).")
    p.add_argument("--recipient", default="", help="0x recipient address")
    p.add_argument("--amount", default="", help="Total amount in display units, e.g. 0.1")
    p.add_argument("--hours", default="", help="Stream duration in hours")
    p.add_argument("--usd-rate", default=None, help="USD per hour; back-computes --amount")
    p.add_argument("--type", dest="stream_type", choices=[t.value for t in StreamType], default="work")
    p.add_argument("--description", default="")
    p.add_argument("--preset", choices=[t.value for t in StreamType], default=None, help="Start from a demo preset")
    p.add_argument("--sender", default=None, help="Sender wallet address (defaults to SENDER_ADDRESS)")
    p.add_argument("--quote-only", action="store_true", help="Print the rate quote and exit")
    p.add_argument("--yes", action="store_true", help="Confirm without prompting")
    return p.parse_args()


def build_draft(args: argparse.Namespace) -> StreamDraft:
    if args.preset:
        draft = draft_from_preset(StreamType(args.preset), recipient=args.recipient)
        if args.description:
            draft = dataclasses.replace(draft, description=args.description)
        return draft
    return StreamDraft(
        recipient=args.recipient,
        total_amount=args.amount,
        duration_hours=args.hours,
        stream_type=StreamType(args.stream_type),
        description=args.description,
    )


def result_to_dict(result: AttemptResult) -> dict[str, Any]:
    out: dict[str, Any] = {"status": result.status.value, "notice": result.notice}
    if result.issues:
        out["issues"] = [{"field": i.field, "code": i.code.value, "message": i.message} for i in result.issues]
    if result.assessment:
        a = result.assessment
        out["assessment"] = {
            "risk_score": a.risk_score,
            "risk_band": risk_band(a.risk_score),
            "risk_factors": list(a.risk_factors),
            "recommendation": a.recommendation.value,
            "message": a.message,
        }
    if result.error:
        out["error"] = str(result.error)
    if result.receipt:
        out["receipt"] = {
            "reference": result.receipt.reference,
            "total_amount_atomic": str(result.receipt.total_amount_atomic),
            "duration_seconds": result.receipt.duration_seconds,
        }
    return out


async def run(args: argparse.Namespace, settings: Settings) -> dict[str, Any]:
    orchestrator = CreationOrchestrator(
        gate=FraudGate(FraudCheckClient(settings)),
        submitter=DryRunStreamSubmitter(),
        sender_address=resolve_sender_address(settings),
        draft=build_draft(args),
    )
    if args.usd_rate:
        orchestrator.apply_usd_rate_hint(args.usd_rate)

    d = orchestrator.draft
    output: dict[str, Any] = {
        "draft": {
            "recipient": d.recipient,
            "total_amount": d.total_amount,
            "duration_hours": d.duration_hours,
            "stream_type": d.stream_type.value,
            "description": d.description,
        }
    }
    q = orchestrator.current_quote()
    if q is not None:
        output["quote"] = {
            "total_amount_atomic": str(q.total_amount_atomic),
            "duration_seconds": q.duration_seconds,
            "duration": q.duration_display,
            "rate_per_second_atomic": str(q.rate_per_second_atomic),
            "rate_per_hour": f"{q.rate_per_hour_display} {settings.currency}",
            "rate_per_hour_usd": f"{q.rate_per_hour_usd:.2f}",
            "undistributed_atomic": str(q.residual_atomic),
        }
    if args.quote_only:
        return output

    result = await orchestrator.begin_attempt(args.sender)
    if result.status is AttemptStatus.BLOCKED:
        output["check"] = result_to_dict(result)
        result = orchestrator.close()
    elif result.status is AttemptStatus.AWAITING_CONFIRMATION:
        output["check"] = result_to_dict(result)
        answer = "y" if args.yes else input("Proceed with stream creation? [y/N] ").strip().lower()
        result = await orchestrator.confirm() if answer in {"y", "yes"} else orchestrator.cancel()

    output["result"] = result_to_dict(result)
    return output


def load_settings() -> Settings:
    """Load the repo .env and refresh the shared settings, which quotes read at call time."""
    root = Path(__file__).resolve().parent.parent
    load_dotenv(root / ".env")
    fresh = Settings()
    for name in Settings.model_fields:
        setattr(settings, name, getattr(fresh, name))
    return settings


def main() -> None:
    args = parse_args()
    cfg = load_settings()
    logging.basicConfig(level=cfg.log_level.upper(), format="%(levelname)s | %(name)s | %(message)s")
    if not cfg.dry_run:
        raise SystemExit("Only dry-run submission is available from this script. Set DRY_RUN=true.")

    print(json.dumps(asyncio.run(run(args, cfg)), indent=2))


if __name__ == "__main__":
    main()

#!/usr/bin/env python3
from __future__ import annotations

import argparse
import asyncio
import json
from collections import Counter
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path
from statistics import mean
from typing import Any

import httpx


@dataclass
class AppendResult:
    case_id: int
    text: str
    http_status: int | None
    append_ms: float
    error: str | None


def _percentile(values: list[float], p: float) -> float | None:
    if not values:
        return None
    if len(values) == 1:
        return round(values[0], 2)
    sorted_values = sorted(values)
    rank = (len(sorted_values) - 1) * p
    low = int(rank)
    high = min(low + 1, len(sorted_values) - 1)
    weight = rank - low
    result = sorted_values[low] * (1 - weight) + sorted_values[high] * weight
    return round(result, 2)


def summarize_messages(
    *,
    sent_texts: list[str],
    stored_texts: list[str],
    initial_count: int,
) -> dict[str, Any]:
    """Compare what was sent with what the chat holds after the run."""
    stored_counter = Counter(stored_texts)
    missing = [text for text in sent_texts if stored_counter.get(text, 0) == 0]
    duplicated = sorted(text for text in set(sent_texts) if stored_counter.get(text, 0) > 1)
    expected_total = initial_count + len(sent_texts)
    return {
        "initial_count": initial_count,
        "sent_total": len(sent_texts),
        "expected_total": expected_total,
        "stored_total": len(stored_texts),
        "missing": missing,
        "duplicated": duplicated,
        "consistent": not missing and not duplicated and len(stored_texts) == expected_total,
    }


async def _append_case(
    *,
    case_id: int,
    client: httpx.AsyncClient,
    base_url: str,
    chat_id: str,
    message_prefix: str,
) -> AppendResult:
    text = f"{message_prefix} #{case_id}"
    start = asyncio.get_running_loop().time()
    try:
        resp = await client.patch(
            f"{base_url}/api/chats/{chat_id}/messages",
            json={"text": text, "isMe": True},
        )
    except httpx.HTTPError as exc:
        return AppendResult(
            case_id=case_id,
            text=text,
            http_status=None,
            append_ms=round((asyncio.get_running_loop().time() - start) * 1000, 2),
            error=f"request_error: {exc}",
        )
    append_ms = (asyncio.get_running_loop().time() - start) * 1000
    return AppendResult(
        case_id=case_id,
        text=text,
        http_status=resp.status_code,
        append_ms=round(append_ms, 2),
        error=None if resp.status_code == 200 else f"http_{resp.status_code}",
    )


async def _run_check(args: argparse.Namespace) -> dict[str, Any]:
    base_url = args.base_url.rstrip("/")
    semaphore = asyncio.Semaphore(args.concurrency)
    timeout = httpx.Timeout(timeout=args.timeout_sec)
    results: list[AppendResult] = []

    async with httpx.AsyncClient(timeout=timeout) as client:
        create_resp = await client.post(
            f"{base_url}/api/chats",
            json={"firstName": args.first_name, "lastName": args.last_name, "messages": []},
        )
        create_resp.raise_for_status()
        chat_id = str(create_resp.json()["_id"])

        async def wrapped(case_id: int) -> None:
            async with semaphore:
                result = await _append_case(
                    case_id=case_id,
                    client=client,
                    base_url=base_url,
                    chat_id=chat_id,
                    message_prefix=args.message_prefix,
                )
                results.append(result)

        tasks = [asyncio.create_task(wrapped(index + 1)) for index in range(args.total)]
        await asyncio.gather(*tasks)

        list_resp = await client.get(f"{base_url}/api/chats/{chat_id}")
        list_resp.raise_for_status()
        stored = list_resp.json().get("messages") or []

    sent_texts = [item.text for item in results if item.error is None]
    stored_texts = [str(item.get("text") or "") for item in stored if item.get("isMe")]
    latencies = [item.append_ms for item in results]
    return {
        "meta": {
            "generated_at": datetime.now(UTC).isoformat(),
            "base_url": base_url,
            "chat_id": chat_id,
            "total": args.total,
            "concurrency": args.concurrency,
            "timeout_sec": args.timeout_sec,
        },
        "summary": {
            **summarize_messages(
                sent_texts=sent_texts,
                stored_texts=stored_texts,
                initial_count=0,
            ),
            "http_status": dict(
                sorted(Counter(str(item.http_status) for item in results).items())
            ),
            "latency_ms": {
                "append_avg": round(mean(latencies), 2) if latencies else None,
                "append_p50": _percentile(latencies, 0.5),
                "append_p95": _percentile(latencies, 0.95),
                "append_p99": _percentile(latencies, 0.99),
            },
        },
        "results": [item.__dict__ for item in sorted(results, key=lambda x: x.case_id)],
    }


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Fire concurrent appends at one chat and verify none were lost"
    )
    parser.add_argument("--base-url", default="http://127.0.0.1:8000")
    parser.add_argument("--total", type=int, default=50)
    parser.add_argument("--concurrency", type=int, default=10)
    parser.add_argument("--timeout-sec", type=float, default=30.0)
    parser.add_argument("--first-name", default="Race")
    parser.add_argument("--last-name", default="Check")
    parser.add_argument("--message-prefix", default="race message")
    parser.add_argument("--output-dir", default="data/benchmarks")
    parser.add_argument("--output-file", default="")
    return parser


def main() -> None:
    parser = _build_parser()
    args = parser.parse_args()
    if args.total < 1:
        raise SystemExit("--total must be >= 1")
    if args.concurrency < 1:
        raise SystemExit("--concurrency must be >= 1")

    report = asyncio.run(_run_check(args))
    output_dir = Path(args.output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    output_file = Path(args.output_file) if args.output_file else output_dir / (
        f"append_race_{datetime.now(UTC).strftime('%Y%m%d_%H%M%S')}.json"
    )
    output_file.write_text(json.dumps(report, ensure_ascii=False, indent=2), encoding="utf-8")

    summary = report.get("summary", {})
    print(f"[race] output={output_file}")
    print(f"[race] consistent={summary.get('consistent')}")
    print(f"[race] stored={summary.get('stored_total')} expected={summary.get('expected_total')}")
    print(f"[race] missing={len(summary.get('missing') or [])}")
    print(f"[race] append_latency={summary.get('latency_ms', {}).get('append_p95')}ms(p95)")
    if not summary.get("consistent"):
        raise SystemExit(1)


if __name__ == "__main__":
    main()

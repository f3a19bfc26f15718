from __future__ import annotations

import argparse
import json
import time
from dataclasses import dataclass
from pathlib import Path
from urllib import request

EVENT_TELEMETRY = "telemetry"
ALERT_EVENTS = {"alert-active", "alert-resolved"}


@dataclass
class ReplayContext:
    """Runtime context for event replay requests."""

    api_base: str
    refresh_ts: bool


def post_json(url: str, payload: dict) -> dict:
    data = json.dumps(payload).encode("utf-8")
    req = request.Request(
        url=url,
        data=data,
        headers={"Content-Type": "application/json"},
        method="POST",
    )
    with request.urlopen(req, timeout=10) as resp:
        return json.loads(resp.read().decode("utf-8"))


def load_events(path: Path) -> list[dict]:
    events = []
    for line_no, line in enumerate(path.read_text(encoding="utf-8").splitlines(), 1):
        if not line.strip() or line.lstrip().startswith("#"):
            continue
        try:
            event = json.loads(line)
        except json.JSONDecodeError as error:
            raise SystemExit(f"line {line_no}: invalid JSON ({error})") from error
        if not isinstance(event, dict) or not isinstance(event.get("data"), dict):
            raise SystemExit(f"line {line_no}: expected {{'event', 'data'}} object")
        name = event.get("event")
        if name not in ALERT_EVENTS | {EVENT_TELEMETRY}:
            raise SystemExit(f"line {line_no}: unsupported event {name!r}")
        events.append(event)
    return events


def replay_event(context: ReplayContext, index: int, event: dict) -> None:
    name = event["event"]
    data = dict(event["data"])
    if name == EVENT_TELEMETRY:
        if context.refresh_ts:
            data["ts"] = time.time()
        response = post_json(f"{context.api_base}/v1/telemetry", {"samples": [data]})
        states = [drone["state"] for drone in response["drones"]]
        print(f"[EVENT {index}] telemetry {data.get('droneDbId')} -> {states}")
        return
    response = post_json(
        f"{context.api_base}/v1/events",
        {"event": name, "data": data},
    )
    print(f"[EVENT {index}] {name} {data.get('id')} -> applied={response['applied']}")


def main() -> None:
    parser = argparse.ArgumentParser()
    parser.add_argument(
        "--events-file",
        required=True,
        help="JSON-lines file with {'event': ..., 'data': {...}} records",
    )
    parser.add_argument("--api-base", default="http://127.0.0.1:8000")
    parser.add_argument("--rate", type=float, default=2.0, help="Events per second")
    parser.add_argument("--loop", action="store_true", help="Replay until stopped")
    parser.add_argument(
        "--keep-ts",
        action="store_true",
        help="Send telemetry timestamps as recorded",
    )
    args = parser.parse_args()

    events_file = Path(args.events_file)
    if not events_file.exists():
        raise SystemExit(f"events file not found: {events_file}")

    events = load_events(events_file)
    if not events:
        raise SystemExit("no events found")

    context = ReplayContext(api_base=args.api_base, refresh_ts=not args.keep_ts)
    print(f"[INFO] events={len(events)}, api_base={context.api_base}")

    dt = 1.0 / args.rate if args.rate > 0 else 0.5

    while True:
        for idx, event in enumerate(events):
            replay_event(context=context, index=idx, event=event)
            time.sleep(dt)
        if not args.loop:
            break

    print("[DONE]")
    print(f"Check alerts: {context.api_base}/v1/alerts")
    print(f"Check drones: {context.api_base}/v1/drones/status")


if __name__ == "__main__":
    main()

from __future__ import annotations

import argparse
import sys
import uuid

import httpx


def _run(*, base_url: str, timeout: float) -> int:
    base_url = base_url.rstrip("/")

    with httpx.Client(trust_env=False, timeout=timeout) as client:
        health = client.get(f"{base_url}/system/health")
        health.raise_for_status()

        guest = client.post(f"{base_url}/auth/guest")
        guest.raise_for_status()
        headers = {"Authorization": f"Bearer {guest.json()['token']}"}

        issued = client.post(f"{base_url}/chatbot/api-key/issue", headers=headers)
        issued.raise_for_status()
        key_headers = {"Authorization": f"Bearer {issued.json()['apiKey']}"}

        name = f"smoke-{uuid.uuid4().hex[:8]}"
        goal = client.post(
            f"{base_url}/goals",
            headers=headers,
            json={"name": name, "targetDate": "2030-01-01", "targetLevel": 10, "unit": "times"},
        )
        if goal.status_code == 409:
            print("Guest account is at its goal limit; delete a goal and retry.")
            return 2
        goal.raise_for_status()
        goal_id = goal.json()["id"]

        try:
            rec = client.post(
                f"{base_url}/chatbot/records",
                headers=key_headers,
                json={"goalName": name, "date": "2026-01-01", "level": 1, "message": "smoke"},
            )
            rec.raise_for_status()

            batch = client.post(
                f"{base_url}/chatbot/records/batch",
                headers=key_headers,
                json={
                    "records": [
                        {"goalId": goal_id, "date": "2026-01-02", "level": 2},
                        {"goalName": name, "date": "2026-02-30", "level": 3},
                    ]
                },
            )
            batch.raise_for_status()
            report = batch.json()

            listed = client.get(f"{base_url}/chatbot/records", headers=key_headers, params={"goalId": goal_id})
            listed.raise_for_status()
            count = listed.json()["count"]
        finally:
            client.delete(f"{base_url}/goals/{goal_id}", headers=headers)

        print("base_url=", base_url)
        print("goal=", name, goal_id)
        print("batch_inserted=", report.get("inserted"), "batch_failed=", report.get("failedCount"))
        print("record_count=", count)

        if count != 2 or report.get("failedCount") != 1:
            print("FAIL: expected 2 records and 1 rejected batch item")
            return 2

    print("OK")
    return 0


def main(argv: list[str]) -> int:
    parser = argparse.ArgumentParser(
        description="Smoke test: guest sign-in -> issue chatbot key -> goal -> record + batch -> list."
    )
    parser.add_argument("--base-url", default="http://127.0.0.1:8787")
    parser.add_argument("--timeout", type=float, default=15.0)
    args = parser.parse_args(argv)

    try:
        return _run(base_url=args.base_url, timeout=args.timeout)
    except httpx.HTTPError as e:
        print("HTTP ERROR:", e)
        return 1


if __name__ == "__main__":
    raise SystemExit(main(sys.argv[1:]))

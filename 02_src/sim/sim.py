"""SIM implementation - fake session producer for local runs."""

import asyncio
import json
import os
import random
import time
import uuid
from pathlib import Path
from typing import Protocol

from session_relay.logging_config import get_logger

logger = get_logger(__name__)


class ISim(Protocol):
    """Generate session files. Hardcoded scenario."""

    async def start(self) -> None:
        """Start hardcoded scenario."""
        ...

    async def stop(self) -> None:
        """Stop scenario."""
        ...


def _now_ms() -> int:
    return int(time.time() * 1000)


class Sim:
    """Writes sessions.json and JSONL transcripts the way the producer does."""

    def __init__(
        self,
        sessions_dir: str | Path,
        step_delay: float = 1.0,
        split_delay: float = 0.2,
    ):
        self._sessions_dir = Path(sessions_dir)
        self._step_delay = step_delay
        self._split_delay = split_delay
        self._sessions: dict[str, dict] = {}
        self._running = False
        self._task: asyncio.Task | None = None

    @property
    def sessions(self) -> dict[str, dict]:
        return self._sessions

    async def start(self) -> None:
        """Start hardcoded scenario."""
        if self._running:
            return

        self._running = True
        self._sessions_dir.mkdir(parents=True, exist_ok=True)
        self._task = asyncio.create_task(self._run_scenario())

    async def stop(self) -> None:
        """Stop scenario."""
        self._running = False

        if self._task:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass

    async def _run_scenario(self) -> None:
        """Run hardcoded scenario."""
        virtual_sessions = [
            {"key": "agent:main:alice", "model": "claude-sonnet-4"},
            {"key": "agent:main:bob", "model": "claude-haiku-4"},
            {"key": "agent:main:charlie", "model": "gpt-4o"},
        ]

        prompts = [
            "Summarize the open issues",
            "Draft a reply to the customer",
            "Check the deployment status",
        ]

        try:
            for virtual in virtual_sessions:
                session_id = str(uuid.uuid4())
                now = _now_ms()
                self._sessions[virtual["key"]] = {
                    "sessionId": session_id,
                    "sessionKey": virtual["key"],
                    "kind": "direct",
                    "model": virtual["model"],
                    "status": "active",
                    "inputTokens": 0,
                    "outputTokens": 0,
                    "totalTokens": 0,
                    "startTime": now,
                    "updatedAt": now,
                }
                self._transcript(session_id).touch()
            self._write_index()
            logger.info("SIM: created %d sessions in %s", len(virtual_sessions), self._sessions_dir)

            for round_idx in range(3):
                if not self._running:
                    break

                for record in list(self._sessions.values()):
                    if not self._running:
                        break

                    prompt = prompts[round_idx % len(prompts)]
                    await self._append(record, {"role": "user", "content": prompt})
                    await self._append(
                        record,
                        {"role": "assistant", "content": [{"type": "text", "text": f"Working on: {prompt}"}]},
                        split=True,
                    )

                    used_in = random.randint(50, 400)
                    used_out = random.randint(20, 200)
                    record["inputTokens"] += used_in
                    record["outputTokens"] += used_out
                    record["totalTokens"] += used_in + used_out
                    record["updatedAt"] = _now_ms()
                    self._write_index()

                    await asyncio.sleep(self._step_delay)

            # Wind down: one goes idle, one disappears from the index
            keys = list(self._sessions)
            if keys:
                self._sessions[keys[0]]["status"] = "idle"
                self._sessions[keys[0]]["updatedAt"] = _now_ms()
            if len(keys) > 1:
                del self._sessions[keys[-1]]
            self._write_index()

        except asyncio.CancelledError:
            pass
        except Exception as e:
            logger.error("SIM scenario error: %s", e)

    def _transcript(self, session_id: str) -> Path:
        return self._sessions_dir / f"{session_id}.jsonl"

    def _write_index(self) -> None:
        """Replace sessions.json atomically."""
        target = self._sessions_dir / "sessions.json"
        tmp = target.with_suffix(".json.tmp")
        tmp.write_text(json.dumps(self._sessions, indent=2), encoding="utf-8")
        os.replace(tmp, target)

    async def _append(self, record: dict, message: dict, split: bool = False) -> None:
        """Append one transcript line, optionally in two separate writes."""
        entry = {
            "type": "message",
            "id": uuid.uuid4().hex[:8],
            "timestamp": time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "message": message,
        }
        data = (json.dumps(entry) + "\n").encode("utf-8")
        path = self._transcript(record["sessionId"])

        chunks = [data[: len(data) // 2], data[len(data) // 2 :]] if split else [data]
        for chunk in chunks:
            with open(path, "ab") as f:
                f.write(chunk)
            if split:
                await asyncio.sleep(self._split_delay)

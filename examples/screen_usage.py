#!/usr/bin/env python3
"""
Example usage of the screen session orchestration engine.

This example demonstrates how to drive the orchestrator programmatically:
listing sessions, creating one from a template, previewing a window and
cleaning up again.
"""

import asyncio
from pathlib import Path

from sesh.config import SeshConfig
from sesh.core.exceptions import SeshError
from sesh.core.models import PreviewSnapshot
from sesh.core.orchestrator import Orchestrator
from sesh.core.templates import load_template


async def list_sessions(orchestrator: Orchestrator) -> None:
    """Print every live session with its windows."""
    print("=== Live Sessions ===")

    sessions = await orchestrator.list_sessions()
    if not sessions:
        print("No screen sessions found")
    for session in sessions:
        windows = ", ".join(f"{w.index}:{w.title}" for w in session.windows)
        print(f"{session.identifier} ({session.status.value}) [{windows}]")

    for host, reason in orchestrator.unavailable_hosts.items():
        print(f"! {host} unavailable: {reason}")


async def template_example(orchestrator: Orchestrator) -> None:
    """Create a session from the bundled template and preview it."""
    print("\n=== Template Session ===")

    template = load_template(Path(__file__).parent / "templates" / "webdev.yaml")

    try:
        identifier = await orchestrator.start_template(
            template,
            {"PROJECT_DIR": str(Path.cwd())},
            session_name="sesh-example",
        )
        print(f"✓ Session created: {identifier}")

        for window in await orchestrator.windows(identifier):
            print(f"  window {window.index}: {window.title}")

        snapshot = await orchestrator.capture_preview(identifier, window_index=0)
        print(f"✓ Captured {len(snapshot.lines)} lines from window 0")

        await orchestrator.kill(identifier)
        print("✓ Session killed")

    except SeshError as e:
        print(f"✗ Error: {e}")


async def preview_polling(orchestrator: Orchestrator) -> None:
    """Follow the first session's active window for a few seconds."""
    print("\n=== Preview Polling ===")

    sessions = await orchestrator.list_sessions()
    if not sessions:
        print("Nothing to preview")
        return

    def show(snapshot: PreviewSnapshot) -> None:
        tail = snapshot.lines[-1] if snapshot.lines else ""
        print(f"[{snapshot.captured_at:%H:%M:%S}] {snapshot.identifier}: {tail}")

    orchestrator.on_preview = show
    orchestrator.on_preview_error = lambda error: print(f"✗ Preview: {error}")

    active = sessions[0].active_window
    orchestrator.select(sessions[0].identifier, active.index if active else 0)
    await asyncio.sleep(3)
    orchestrator.select(None)


async def main() -> None:
    """Run all examples."""
    orchestrator = Orchestrator(SeshConfig(preview_interval=1.0))
    orchestrator.start()
    try:
        await list_sessions(orchestrator)
        await template_example(orchestrator)
        await preview_polling(orchestrator)
    finally:
        await orchestrator.stop()


if __name__ == "__main__":
    asyncio.run(main())

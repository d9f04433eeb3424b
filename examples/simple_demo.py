#!/usr/bin/env python3
"""
Simple demo of claude-streams reading and following a conversation.

Builds a throwaway Claude directory, reads a conversation in small pages,
then appends to it from another thread and waits for the notification.
"""

import json
import tempfile
import threading
import time
from pathlib import Path

from claudestreams import ClaudeStorage, ZERO_OFFSET

CONVERSATION_ID = "11111111-1111-1111-1111-111111111111"


def main():
    print("=" * 60)
    print("claude-streams - Read and Follow Demo")
    print("=" * 60)

    with tempfile.TemporaryDirectory() as tmpdir:
        claude_dir = Path(tmpdir)
        project = claude_dir / "projects" / "-home-demo-project"
        project.mkdir(parents=True)
        conversation = project / f"{CONVERSATION_ID}.jsonl"

        print("\n[1] Writing 5 records...")
        with conversation.open("w") as f:
            for i in range(5):
                f.write(json.dumps({"type": "user", "n": i}) + "\n")

        with ClaudeStorage(str(claude_dir)) as storage:
            print(f"\n[2] Known streams: {storage.list_streams()}")

            print("\n[3] Reading in pages of ~40 bytes...")
            offset = ZERO_OFFSET
            while True:
                result = storage.read(CONVERSATION_ID, offset, 40)
                if not result.messages:
                    break
                for message in result.messages:
                    print(f"  {message.offset}  {message.json()}")
                offset = result.next_offset

            print("\n[4] Subscribing and appending from another thread...")
            cancel = threading.Event()
            channel = storage.subscribe(CONVERSATION_ID, offset, cancel)

            def writer():
                time.sleep(0.2)
                with conversation.open("a") as f:
                    f.write(json.dumps({"type": "assistant", "n": 5}) + "\n")

            threading.Thread(target=writer).start()

            tail = channel.get(timeout=5.0)
            print(f"  Notified, tail offset: {tail}")

            result = storage.read(CONVERSATION_ID, offset, 1024)
            for message in result.messages:
                print(f"  New record: {message.json()}")

            cancel.set()

    print("\nDone.")


if __name__ == "__main__":
    main()

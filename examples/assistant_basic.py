#!/usr/bin/env python3
"""
Basic NETRA Example

Runs the assistant with a USB camera, console narration and typed
commands, printing every state change.

Requirements:
    pip install netra-assistant[vision]
    A vision-language model behind an OpenAI-compatible endpoint:
        export NETRA_VLM_HOST=http://localhost:8000/v1
        export NETRA_VLM_MODEL=Qwen/Qwen2.5-VL-7B-Instruct

Usage:
    python assistant_basic.py
    > look around
    > describe the mug
    > stop
"""

import asyncio

from netra.assistant import AssistantConfig, Orchestrator
from netra.assistant.camera import Camera
from netra.services import (
    ConsoleNarrator,
    ConsoleRecognizer,
    OpenAIVisionService,
    StaticLocationProvider,
)


def on_state_change(old_state, new_state):
    print(f"  [{old_state.value} -> {new_state.value}]")


async def main():
    config = AssistantConfig(
        # Fixed position for "where am I"
        latitude=48.8584,
        longitude=2.2945,

        # Announce visible objects at least every 10 seconds in auto-scan
        announce_interval=10.0,

        on_state_change=on_state_change,
    )

    orchestrator = Orchestrator(
        vision=OpenAIVisionService(),
        narrator=ConsoleNarrator(),
        recognizer=ConsoleRecognizer(),
        camera=Camera(),
        location=StaticLocationProvider(config.latitude, config.longitude),
        config=config,
    )

    print("Type a command and press Enter. Ctrl+D to quit.\n")
    try:
        await orchestrator.run()
    finally:
        await orchestrator.close()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\nGoodbye!")

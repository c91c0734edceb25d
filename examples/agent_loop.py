#!/usr/bin/env python3
"""
llmsdk Agent Loop Example

Runs a weather question through the agent loop with one server tool and
prints every event as it arrives. The model calls ``get_weather``, the
runtime executes it, feeds the result back and the model answers.

Run:
    export OPENAI_API_KEY=your-key
    python agent_loop.py

Set LLMSDK_MODEL to try another backend, e.g. ``claude-sonnet-4-20250514``
with ANTHROPIC_API_KEY or ``gemini-2.0-flash`` with GOOGLE_API_KEY.
"""

import asyncio
import logging
import os

from llmsdk import (
    ActionEndEvent,
    ChatRequest,
    DoneEvent,
    ErrorEvent,
    LoopIterationEvent,
    Message,
    MessageDeltaEvent,
    Runtime,
    RuntimeConfig,
    define_tool,
)

FORECASTS = {
    "paris": {"temp_c": 18, "conditions": "light rain"},
    "tokyo": {"temp_c": 24, "conditions": "clear"},
}


@define_tool(
    description="Get the current weather for a city.",
    parameters={
        "type": "object",
        "properties": {"city": {"type": "string", "description": "City name"}},
        "required": ["city"],
    },
)
async def get_weather(city: str):
    await asyncio.sleep(0.1)
    forecast = FORECASTS.get(city.lower())
    if forecast is None:
        raise ValueError(f"No forecast for {city}")
    return {"city": city, **forecast}


async def main():
    logging.basicConfig(level=logging.INFO)

    runtime = Runtime(
        RuntimeConfig(
            model=os.environ.get("LLMSDK_MODEL", "gpt-4o-mini"),
            system_prompt="You are a concise weather assistant.",
            tools=[get_weather],
        )
    )
    request = ChatRequest(messages=[Message.user("Should I take an umbrella in Paris today?")])

    async for event in runtime.process_chat_with_loop(request):
        if isinstance(event, LoopIterationEvent):
            print(f"\n--- iteration {event.iteration}/{event.max_iterations} ---")
        elif isinstance(event, MessageDeltaEvent):
            print(event.content, end="", flush=True)
        elif isinstance(event, ActionEndEvent):
            outcome = event.error or event.result
            print(f"\n[{event.name}] -> {outcome}")
        elif isinstance(event, ErrorEvent):
            print(f"\nError ({event.code}): {event.message}")
        elif isinstance(event, DoneEvent):
            print(f"\n\n{len(event.messages)} new message(s) in the conversation")


if __name__ == "__main__":
    asyncio.run(main())

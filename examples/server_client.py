#!/usr/bin/env python3
"""
llmsdk Server Client Example

Talks to a running llmsdk server, first streaming a reply over SSE and
then asking for a batch response. A client-side tool is declared with the
request: when the model calls it the server hands the call back, this
script answers it locally and sends the extended conversation again.

Run:
    export OPENAI_API_KEY=your-key
    llmsdk-server --port 8000 &
    python server_client.py
"""

import os

from llmsdk import ChatClient, DoneEvent, MessageDeltaEvent, ToolCallsEvent

SERVER_URL = os.environ.get("LLMSDK_SERVER_URL", "http://localhost:8000")

CLIENT_TOOLS = [
    {
        "name": "get_local_time",
        "description": "Return the user's local time.",
        "inputSchema": {"type": "object", "properties": {}},
    }
]


def run_client_tool(name, args):
    from datetime import datetime

    if name == "get_local_time":
        return datetime.now().strftime("%H:%M")
    return f"Unknown tool: {name}"


def main():
    with ChatClient(SERVER_URL, api_key=os.environ.get("LLMSDK_CLIENT_KEY")) as client:
        messages = [{"role": "user", "content": "What time is it for me right now?"}]

        while True:
            pending = []
            for event in client.stream({"messages": messages, "tools": CLIENT_TOOLS}):
                if isinstance(event, MessageDeltaEvent):
                    print(event.content, end="", flush=True)
                elif isinstance(event, ToolCallsEvent):
                    pending = event.tool_calls
                elif isinstance(event, DoneEvent):
                    messages.extend(m.to_dict() for m in event.messages or [])

            if not pending:
                break
            for call in pending:
                result = run_client_tool(call.name, call.input)
                print(f"\n[{call.name}] -> {result}")
                messages.append({"role": "tool", "tool_call_id": call.id, "content": result})

        print()
        response = client.send({"messages": [{"role": "user", "content": "Say hello in French."}]})
        print(f"Batch reply: {response.content}")


if __name__ == "__main__":
    main()

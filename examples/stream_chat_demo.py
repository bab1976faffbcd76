"""Minimal console demonstration of the streaming session controller."""

import asyncio
import sys

from chat_core.api import service


def _render(messages):
    last = messages[-1]
    if last.sender == "assistant" and last.is_streaming:
        sys.stdout.write("\r" + last.content)
        sys.stdout.flush()


async def main() -> None:
    session = service.get_default_session()
    session.subscribe(_render)
    print("AI:", session.messages[0].content)
    while True:
        text = await asyncio.to_thread(input, "\n你: ")
        if text.strip() in {"/quit", "/exit"}:
            break
        if text.strip() == "/clear":
            service.clear_messages()
            continue
        res = await service.send_message(text)
        if res.get("error"):
            print("配置错误:", res["error"])
            continue
        msg = res["assistant_message"]
        if msg:
            print("\rAI:", msg["content"])


if __name__ == "__main__":
    asyncio.run(main())

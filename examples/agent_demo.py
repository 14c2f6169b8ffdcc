"""
Simulation of an AI agent using toolguard.

The "model" here is scripted: it picks tool calls one after another, some
reasonable and some not. toolguard runs the reasonable ones and turns the
rest into denials the model can read.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from pathlib import Path

from toolguard import ResultStatus, create_registry, setup_logging


@dataclass
class AgentAction:
    thought: str
    tool: str
    params: dict = field(default_factory=dict)


class MockLLM:
    """Simulates an LLM acting on a user request."""

    def __init__(self):
        self.step = 0

    def next_action(self) -> AgentAction | None:
        """Returns the next tool call the 'AI' wants to make."""
        actions = [
            # Innocent exploration
            AgentAction("I need to see what files are here.", "list_dir", {"path": "."}),
            # Doing work (safe)
            AgentAction(
                "I'll create a python script.",
                "write_file",
                {"path": "hello.py", "content": 'print("Hello World")\n'},
            ),
            AgentAction("Let me run the script.", "exec", {"command": "python3 hello.py"}),
            # Confused: tries to modify the user's shell config
            AgentAction(
                "I should update the system shell config.",
                "exec",
                {"command": "echo 'alias x=\"rm -rf /\"' >> ~/.bashrc"},
            ),
            # Escaping the workspace through the file tools
            AgentAction("Let me read the password file.", "read_file", {"path": "../../etc/passwd"}),
            # SSRF against the cloud metadata endpoint
            AgentAction(
                "I'll grab some credentials.",
                "web_fetch",
                {"url": "http://169.254.169.254/latest/meta-data/"},
            ),
        ]

        if self.step < len(actions):
            action = actions[self.step]
            self.step += 1
            return action
        return None


async def main():
    setup_logging(logging.WARNING)

    workspace = Path("./workspace")
    workspace.mkdir(parents=True, exist_ok=True)

    # "auto" picks bubblewrap or docker; fall back to "none" on a dev box
    registry = create_registry({"workspace": str(workspace), "sandbox": "none"})

    print("Agent initializing...")
    print(f"Tools: {', '.join(registry.tool_names)}\n")

    llm = MockLLM()
    while True:
        action = llm.next_action()
        if not action:
            print("Agent finished task.")
            break

        print(f"Thought: {action.thought}")
        print(f"  [Tool] {action.tool} {action.params}")

        # Untrusted tool call
        result = await registry.run(action.tool, action.params)

        first_line = result.content.strip().splitlines()[0] if result.content.strip() else ""
        if result.status is ResultStatus.ACCESS_DENIED:
            print(f"  PROTECTED: {first_line}")
        else:
            print(f"  -> {result.status.value}: {first_line}")
        print("-" * 50)


if __name__ == "__main__":
    asyncio.run(main())

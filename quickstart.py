"""Calculator agent running against a local Ollama server.

Usage::

    ollama pull gpt-oss:20b
    python quickstart.py "What is 9 + 10 times 11?"

Set ``TOOLLOOP_OLLAMA_MODEL`` / ``OLLAMA_HOST`` (or a ``.env`` file) to
use another model or server, and ``TOOLLOOP_LOG_LEVEL=simple`` to see
each tool call as it runs.
"""

import asyncio
import sys

from toolloop import Agent, OllamaModel, Tool
from toolloop.env_utils import OLLAMA_MODEL_ENV, get_env_str
from toolloop.tool_decorators import tool_description, tool_name, tool_output, tool_parameter


@tool_name("AdditionTool")
@tool_description("Adds 2 numbers together")
@tool_parameter("a", "The first number to add", "number", required=True)
@tool_parameter("b", "The second number to add", "number", required=True)
@tool_output("The sum of inputs a and b")
class AdditionTool(Tool):
    def execute(self, arguments):
        a = float(arguments["a"])
        b = float(arguments["b"])
        print(f"Adding {a} and {b}: {a + b}")
        return a + b


@tool_name("MultiplicationTool")
@tool_description("Multiplies 2 numbers together")
@tool_parameter("a", "The first number to multiply", "number", required=True)
@tool_parameter("b", "The second number to multiply", "number", required=True)
@tool_output("The product of inputs a and b")
class MultiplicationTool(Tool):
    def execute(self, arguments):
        a = float(arguments["a"])
        b = float(arguments["b"])
        print(f"Multiplying {a} and {b}: {a * b}")
        return a * b


async def main(question: str) -> None:
    ollama = OllamaModel(model=get_env_str(OLLAMA_MODEL_ENV, "gpt-oss:20b"))
    agent = (
        Agent.builder()
        .name("calculatorAgent")
        .tools([AdditionTool(), MultiplicationTool()])
        .system_prompt("You are an agent that runs math operations. Use your tools to double check your work.")
        .model(ollama)
        .build()
    )
    await agent.invoke(question)


if __name__ == "__main__":
    query = " ".join(sys.argv[1:]) or "What is 9 + 10 times 11?"
    asyncio.run(main(query))

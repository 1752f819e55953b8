"""OpenAI function-calling definitions for the gate's tools.

The definitions are generated from the tool classes so the name, description
and input schema offered to the model always match what the gate accepts.
"""

from typing import Any

from gate.ReadDataTool import ReadDataTool


def to_openai_tool(tool: type[ReadDataTool]) -> dict[str, Any]:
    """Render a tool's metadata as an OpenAI function definition."""
    return {
        "type": "function",
        "function": {
            "name": tool.name,
            "description": tool.description,
            "parameters": tool.input_schema,
        },
    }


TOOLS = [to_openai_tool(ReadDataTool)]

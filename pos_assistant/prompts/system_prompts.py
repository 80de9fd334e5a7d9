"""
Tool-directive instructions folded into prompts for text-only models.

Backends without native function calling are taught a small textual
contract instead. The grammar is versioned; the extractor that reads it
back lives in ``pos_assistant.conversation.extractor`` and must accept
everything taught here.
"""

from pos_assistant.schemas.tool_schema import ToolSchema

DIRECTIVE_MARKER = "TOOL_CALL:"
DIRECTIVE_GRAMMAR_VERSION = "1"

TOOL_DIRECTIVE_RULES = f"""
TOOL CALLS (text contract v{DIRECTIVE_GRAMMAR_VERSION}):
- To perform an action, write one line per action, exactly in this form:
  {DIRECTIVE_MARKER} function_name(argument="value", other_argument=2)
- You may also pass a JSON object: {DIRECTIVE_MARKER} function_name({{"argument": "value"}})
- Quote every text value. Numbers are written without quotes.
- One action per line. Several lines are allowed, in the order they should happen.
- After the tool lines, write your short reply to the customer on a new line.
- Never explain the tool lines to the customer.
"""


def render_tool_instructions(tools: list[ToolSchema]) -> str:
    """Render the available tools and the directive contract as prompt text."""
    lines = ["AVAILABLE TOOLS:"]
    for tool in tools:
        properties = tool.parameters_schema.get("properties", {})
        required = set(tool.required)
        args = []
        for name, spec in properties.items():
            marker = "" if name in required else "?"
            args.append(f"{name}{marker}: {spec.get('type', 'string')}")
        lines.append(f"- {tool.name}({', '.join(args)}): {tool.description}")
    lines.append(TOOL_DIRECTIVE_RULES.strip())
    lines.append(
        "Example: "
        + DIRECTIVE_MARKER
        + ' add_item_to_transaction(item_description="Latte", quantity=1, '
        + 'preparation_notes="large, oat milk")'
    )
    return "\n".join(lines)

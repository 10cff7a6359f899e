"""
JSON utilities for tool results exchanged with the model.
"""

import json
from typing import Any, Dict, List


def to_tool_result_content(output: Any) -> List[Dict[str, Any]]:
    """Wrap a tool output as Bedrock ``toolResult`` content blocks.

    Bedrock only accepts JSON objects in a ``json`` block, so anything else
    is serialized into a text block.

    Args:
        output: Tool output, usually a result envelope dictionary

    Returns:
        List with a single content block
    """
    if isinstance(output, dict):
        return [{'json': output}]
    if isinstance(output, str):
        return [{'text': output}]
    return [{'text': json.dumps(output, default=str)}]

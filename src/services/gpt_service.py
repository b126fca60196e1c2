# src/services/gpt_service.py
import json
from typing import Any, Dict, Optional

from openai import OpenAI

from config import Config

CARD_FUNCTION_NAME = "issue_conclusion_card"


class GPTservice:
    def __init__(self, model: Optional[str] = None, api_key: Optional[str] = None):
        self.client = OpenAI(api_key=api_key or Config.OPENAI_API_KEY)
        self.model = model or Config.OPENAI_MODEL

    def generate_card(
        self,
        system_msg: str,
        user_msg: str,
        schema: Dict[str, Any],
        *,
        max_tokens: int = 1500,
        temperature: float = 0.3,
    ) -> Dict[str, Any]:
        """
        Ask the model for a card through a forced function call and return the
        parsed arguments. Schema validation is left to the caller so that
        invalid output can still be stored for inspection.
        """
        tools = [{
            "type": "function",
            "function": {
                "name": CARD_FUNCTION_NAME,
                "description": "Return a structured conclusion card for an economic news issue.",
                "parameters": schema,
            }
        }]

        comp = self.client.chat.completions.create(
            model=self.model,
            temperature=temperature,
            max_tokens=max_tokens,
            messages=[
                {"role": "system", "content": system_msg},
                {"role": "user", "content": user_msg},
            ],
            tools=tools,
            tool_choice={"type": "function", "function": {"name": CARD_FUNCTION_NAME}},
        )

        tool_calls = comp.choices[0].message.tool_calls
        if not tool_calls:
            raise RuntimeError("Model did not return a function call with card data.")
        args = tool_calls[0].function.arguments
        try:
            return json.loads(args)
        except json.JSONDecodeError as e:
            raise RuntimeError(f"Model returned malformed JSON: {e}")

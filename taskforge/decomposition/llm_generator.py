"""LLM-backed subtask generator."""

import json
import logging
import re
from typing import Any, List, Optional
import tiktoken
from openai import AsyncOpenAI, APIError as OpenAIAPIError
from pydantic import ValidationError

from .base import BaseSubtaskGenerator, DecompositionError
from ..config.scheduler_config import SchedulerConfig
from ..models.scheduling_models import Task, SubtaskProposal

logger = logging.getLogger(__name__)

PROMPT_TEMPLATE = """
Task: {name}
Description: {description}

Break this task into {count} smaller, more manageable subtasks.
For each subtask, provide:
1. A clear, specific name
2. A detailed description of what needs to be done
3. Estimated effort in hours (total should be roughly {effort} hours)

Format as a JSON array:
[
  {{
    "name": "subtask name",
    "description": "detailed description",
    "estimatedEffort": hours
  }},
  ...
]
"""

_FENCE_RE = re.compile(r"^```(?:json)?\s*|\s*```$")


class LLMSubtaskGenerator(BaseSubtaskGenerator):
    """
    Asks a chat model for a subtask breakdown.

    GOTCHA: The model answer is untrusted text; anything that is not a JSON
    array of the requested size raises DecompositionError.
    """

    name = "llm"

    def __init__(
        self,
        config: SchedulerConfig,
        client: Optional[AsyncOpenAI] = None,
    ):
        """
        Initialize LLM subtask generator.

        Args:
            config: Scheduler configuration (model, API key, token budget)
            client: Preconfigured OpenAI client
        """
        super().__init__()
        self.config = config
        self.model = config.openai_default_model
        self.client = client or AsyncOpenAI(api_key=config.openai_api_key)

        try:
            self.tokenizer = tiktoken.encoding_for_model(self.model)
        except KeyError:
            # Fallback to cl100k_base for newer models
            self.tokenizer = tiktoken.get_encoding("cl100k_base")

    def _truncate(self, text: str) -> str:
        tokens = self.tokenizer.encode(text)
        if len(tokens) <= self.config.max_prompt_tokens:
            return text
        return self.tokenizer.decode(tokens[: self.config.max_prompt_tokens])

    def build_prompt(self, task: Task, subtask_count: int) -> str:
        return PROMPT_TEMPLATE.format(
            name=task.name,
            description=self._truncate(task.description),
            count=subtask_count,
            effort=task.estimated_effort,
        )

    def parse_response(self, content: str) -> List[SubtaskProposal]:
        """
        Parse a JSON array answer into proposals.

        Args:
            content: Raw model output

        Returns:
            Parsed proposals

        Raises:
            DecompositionError: If the answer is not a valid array
        """
        text = _FENCE_RE.sub("", content.strip())
        try:
            items: Any = json.loads(text)
        except json.JSONDecodeError as e:
            raise DecompositionError(f"Subtask answer is not JSON: {e}")

        if not isinstance(items, list):
            raise DecompositionError("Subtask answer is not a JSON array")

        try:
            return [
                SubtaskProposal(
                    name=item["name"],
                    description=item.get("description", ""),
                    estimated_effort=item.get("estimatedEffort")
                    or item.get("estimated_effort"),
                )
                for item in items
            ]
        except (KeyError, TypeError, AttributeError, ValidationError) as e:
            raise DecompositionError(f"Malformed subtask entry: {e}")

    async def generate(self, task: Task, subtask_count: int) -> List[SubtaskProposal]:
        prompt = self.build_prompt(task, subtask_count)

        try:
            response = await self.client.chat.completions.create(
                model=self.model,
                messages=[
                    {
                        "role": "system",
                        "content": "You plan software work. Answer with JSON only.",
                    },
                    {"role": "user", "content": prompt},
                ],
                temperature=0.3,
            )
        except OpenAIAPIError as e:
            self.logger.error(f"OpenAI API error: {e}")
            raise DecompositionError(f"OpenAI API error: {str(e)}")

        content = response.choices[0].message.content or ""
        proposals = self.parse_response(content)
        return self.validate_proposals(proposals, subtask_count)

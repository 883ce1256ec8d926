"""Scheduler configuration with environment variable loading."""

import os
from typing import Optional
from pydantic import BaseModel, Field
from dotenv import load_dotenv

# Load environment variables from .env file
load_dotenv()


class SchedulerConfig(BaseModel):
    """Configuration for the task scheduler and its collaborators."""

    # Decomposition
    complexity_threshold_hours: float = Field(
        default_factory=lambda: float(os.getenv("COMPLEXITY_THRESHOLD_HOURS", "4")),
        description="Tasks above this effort are split into subtasks",
    )
    subtask_generator: str = Field(
        default_factory=lambda: os.getenv("SUBTASK_GENERATOR", "archetype"),
        description="Subtask generator: archetype, llm",
    )

    # Task store
    task_store_backend: str = Field(
        default_factory=lambda: os.getenv("TASK_STORE_BACKEND", "memory"),
        description="Task store backend: memory, redis",
    )
    redis_url: str = Field(
        default_factory=lambda: os.getenv("REDIS_URL", "redis://localhost:6379/0"),
        description="Redis connection URL",
    )
    redis_key_prefix: str = Field(
        default_factory=lambda: os.getenv("REDIS_KEY_PREFIX", "taskforge"),
        description="Namespace for all Redis keys",
    )
    connection_pool_size: int = Field(
        default_factory=lambda: int(os.getenv("CONNECTION_POOL_SIZE", "10")),
        description="Redis connection pool size",
    )
    lock_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("LOCK_TIMEOUT_SECONDS", "10")),
        description="Expiry of, and wait for, the cross-process task store lock",
    )

    # Caller loop
    poll_interval_seconds: float = Field(
        default_factory=lambda: float(os.getenv("POLL_INTERVAL_SECONDS", "5")),
        description="Interval between scheduler polls",
    )
    max_task_retries: int = Field(
        default_factory=lambda: int(os.getenv("MAX_TASK_RETRIES", "3")),
        description="Failures allowed before a task stays failed",
    )

    # Text generation
    openai_api_key: Optional[str] = Field(
        default_factory=lambda: os.getenv("OPENAI_API_KEY"),
        description="OpenAI API key",
    )
    openai_default_model: str = Field(
        default_factory=lambda: os.getenv("OPENAI_DEFAULT_MODEL", "gpt-4o-mini"),
        description="Model used for subtask generation",
    )
    max_prompt_tokens: int = Field(
        default_factory=lambda: int(os.getenv("MAX_PROMPT_TOKENS", "2000")),
        description="Token budget for the task description in prompts",
    )

    class Config:
        """Pydantic config."""

        env_file = ".env"
        env_file_encoding = "utf-8"

"""Setup configuration for taskforge package."""

from setuptools import setup, find_packages

setup(
    name="taskforge",
    version="0.1.0",
    description="Autonomous task scheduler with decomposition and progress rollup",
    packages=find_packages(include=["taskforge", "taskforge.*"]),
    python_requires=">=3.9",
    install_requires=[
        "pydantic>=2.0.0",
        "python-dotenv>=1.0.0",
        "redis[hiredis]>=5.0.0",
        "openai>=1.0.0",
        "tiktoken>=0.5.0",
        "click>=8.0.0",
        "rich>=13.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.1.0",
            "pytest-mock>=3.11.0",
            "ruff>=0.1.0",
            "mypy>=1.5.0",
            "black>=23.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "taskforge=taskforge.cli.app:main",
        ],
    },
)

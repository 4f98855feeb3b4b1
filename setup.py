"""Setup configuration for the modl moderation engine."""

from setuptools import setup, find_packages

setup(
    name="modl",
    version="0.1.0",
    description="Punishment escalation and AI-assisted chat moderation engine",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.11",
    install_requires=[
        "aiosqlite>=0.20",
        "jsonschema>=4.0",
        "openai>=1.40",
        "prompt_toolkit>=3.0",
        "python-dotenv>=1.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "pytest-asyncio>=0.23",
        ],
    },
    entry_points={
        "console_scripts": [
            "modl=modl.main:main",
        ],
    },
)

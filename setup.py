"""Setup script for the Presearch MCP server."""

from setuptools import setup, find_packages

setup(
    name="presearch-mcp",
    version="2.0.0",
    description="MCP server exposing Presearch web search as tools",
    python_requires=">=3.11",
    packages=find_packages(include=["presearch_mcp", "presearch_mcp.*"]),
    install_requires=[
        "mcp>=1.6,<2",
        "httpx>=0.27",
        "anyio>=4.0",
        "pydantic>=2.6",
        "pydantic-settings>=2.2",
        "python-dotenv>=1.0",
        "psutil>=5.9",
    ],
    extras_require={
        "test": [
            "pytest>=8.0",
            "respx>=0.21",
        ],
    },
    entry_points={
        "console_scripts": [
            "presearch-mcp=presearch_mcp.cli:main",
        ],
    },
)

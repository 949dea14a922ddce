# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Setup configuration for the Agent Portal integration and workflow backend
"""

from setuptools import setup, find_packages

setup(
    name="agent-portal-integrations",
    version="0.1.0",
    description="Integration routing and workflow execution for AI agent portals",
    author="Jason Cafarelli",
    package_dir={"": "backend"},
    packages=find_packages(where="backend", include=["portal", "portal.*"]),
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.104.0",
        "uvicorn>=0.24.0",
        "pydantic>=2.0.0",
        "httpx>=0.25.0",
        "redis>=5.0.1",
        "PyYAML>=6.0",
        "aiofiles>=23.2.1",
        "python-dotenv>=1.0.0",
        "croniter>=2.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ]
    },
)

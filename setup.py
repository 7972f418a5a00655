#!/usr/bin/env python3
# -*- coding: utf-8 -*-
from setuptools import setup, find_packages

setup(
    name="bootstrapper",
    version="1.0.0",
    description="Self-updating installer driven by a versioned release catalog",
    packages=find_packages(include=["bootstrapper", "bootstrapper.*"]),
    python_requires=">=3.10",
    install_requires=[
        "aiohttp>=3.9.0",
        "aiofiles>=23.1.0",
        "loguru>=0.7.0",
        "psutil>=5.9.0",
        "pydantic>=2.11.0",
        "rich>=13.0.0",
        "tqdm>=4.66.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4.0",
            "pytest-asyncio>=0.23.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "bootstrapper=bootstrapper.cli:main",
            "bootstrapper-publish=bootstrapper.cli:publish_main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: System :: Installation/Setup",
        "Topic :: System :: Software Distribution",
    ],
)

"""Setup script for the Solana connection package."""

import os
from setuptools import setup, find_packages

here = os.path.abspath(os.path.dirname(__file__))

# Get description from README
with open(os.path.join(here, "README.md"), "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Get version from package without importing it
about = {}
with open(os.path.join(here, "solana_connection", "__init__.py"), "r", encoding="utf-8") as f:
    for line in f:
        if line.startswith(("__version__", "__author__", "__email__")):
            exec(line, about)

# Get dependencies from requirements.txt
with open(os.path.join(here, "requirements.txt"), "r", encoding="utf-8") as f:
    requirements = [
        line.strip() for line in f.readlines()
        if line.strip() and not line.startswith("#")
    ]

setup(
    name="solana-connection",
    version=about["__version__"],
    description="Async Solana fullnode connection with multiplexed WebSocket subscriptions",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author=about["__author__"],
    author_email=about["__email__"],
    packages=find_packages(include=["solana_connection", "solana_connection.*"]),
    include_package_data=True,
    install_requires=requirements,
    extras_require={
        "test": [
            "pytest>=7.4",
            "pytest-asyncio>=0.23",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    python_requires=">=3.10",
    entry_points={
        "console_scripts": [
            "solana-connection=solana_connection.__main__:main",
        ],
    },
)

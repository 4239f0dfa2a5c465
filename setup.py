"""
Hubspace Bridge
Cloud device capability resolution and sync for Hubspace accounts
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="hubspace-bridge",
    version="0.1.0",
    description="Capability resolution and accessory sync for Hubspace (Afero cloud) devices",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["hubspace_bridge", "hubspace_bridge.*"]),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Home Automation",
    ],
    python_requires=">=3.10",
    install_requires=[
        "aiohttp>=3.9.0",
        "click>=8.0.0",
        "rich>=13.0.0",
        "pydantic>=2.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.23.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "hubspace-bridge=hubspace_bridge.cli:main",
        ],
    },
)

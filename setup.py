"""
Setup configuration for DeskModes.

Mode-based application reconciliation for the macOS desktop.
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read long description from README if it exists
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text() if readme_file.exists() else ""

setup(
    name="deskmodes",
    version="1.0.0",
    description="Switch between named sets of running desktop applications",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="DeskModes Team",
    author_email="",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "click>=8.0",
        "psutil>=5.9",
        "pydantic>=2.0",
        "rich>=13.0",
    ],
    python_requires=">=3.11",
    entry_points={
        "console_scripts": [
            "deskmodes=deskmodes.cli:cli",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: End Users/Desktop",
        "License :: OSI Approved :: MIT License",
        "Operating System :: MacOS :: MacOS X",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Programming Language :: Python :: 3.13",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
        ],
    },
)

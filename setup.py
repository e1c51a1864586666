#!/usr/bin/env python3
"""
Setup script for Stackfall
"""

from setuptools import setup, find_packages

# Read the README file
def read_readme():
    with open("README.md", "r", encoding="utf-8") as fh:
        return fh.read()

# Read requirements
def read_requirements():
    with open("requirements.txt", "r", encoding="utf-8") as fh:
        return [line.strip() for line in fh if line.strip() and not line.startswith("#")]

setup(
    name="stackfall",
    version="0.1.0",
    author="Stackfall Team",
    description="Stackfall: rules engine for a falling-block puzzle game with a damage-based extended mode",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Topic :: Games/Entertainment :: Puzzle Games",
    ],
    python_requires=">=3.9",
    install_requires=read_requirements(),
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "stackfall=stackfall.cli:main",
        ],
    },
    keywords=[
        "tetris",
        "game-engine",
        "srs",
        "gymnasium",
    ],
)

# setup.py

from setuptools import setup, find_packages
from typing import List
import os

def read_requirements(filename: str) -> List[str]:
    """Read requirements from file"""
    with open(os.path.join("requirements", filename)) as f:
        return [line.strip() for line in f if line.strip() and not line.startswith("#")]

setup(
    name="file-cleanup",
    version="1.0.0",
    description="Enforces file retention policies on directories",
    packages=find_packages(include=["src", "src.*"]),
    python_requires=">=3.9",
    install_requires=read_requirements("requirements.txt"),
    extras_require={
        "dev": read_requirements("requirements-dev.txt"),
        "test": read_requirements("requirements-test.txt"),
    },
    entry_points={
        "console_scripts": [
            "file-cleanup=src.file_cleanup.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 5 - Production/Stable",
        "Intended Audience :: System Administrators",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Topic :: System :: Filesystems",
        "Topic :: System :: Systems Administration",
    ],
)

#!/usr/bin/env python3
"""bunbox-deploy CLI - Setup"""

from setuptools import setup, find_packages

with open("requirements.txt") as f:
    requirements = [line for line in f.read().splitlines() if line and not line.startswith("#")]

setup(
    name="bunbox-deploy",
    version="1.0.0",
    description="Deploy Bun apps to VPS servers over SSH with atomic releases",
    author="Bunbox Team",
    packages=find_packages(exclude=["tests", "tests.*"]),
    package_data={"bunbox_deploy": ["stubs/*.j2"]},
    install_requires=requirements,
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "bunbox-deploy=bunbox_deploy.main:main",
        ],
    },
    python_requires=">=3.9",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)

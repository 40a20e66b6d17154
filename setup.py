"""
SwapGuard - Setup Configuration
Risk-annotated swap routing and Wormhole bridging service
"""

from setuptools import setup, find_packages
import os

# Read the README file
with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

# Read requirements
def read_requirements(file):
    """Read requirements from file"""
    if os.path.exists(file):
        with open(file, 'r') as f:
            return [line.strip() for line in f if line.strip() and not line.startswith('#')]
    return []

setup(
    name="swapguard",
    version="1.0.0",
    author="SwapGuard Team",
    description="Cross-chain swap safety layer: risk-scored routes, bridge quotes and pre-execution simulation",
    long_description=long_description,
    long_description_content_type="text/markdown",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Libraries :: Python Modules",
        "Topic :: Internet :: WWW/HTTP :: HTTP Servers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Operating System :: OS Independent",
        "Framework :: AsyncIO",
    ],
    packages=find_packages(exclude=["tests*", "docs*"]),
    py_modules=["main"],
    python_requires=">=3.11",
    install_requires=read_requirements("requirements.txt"),
    extras_require={
        "dev": read_requirements("test-requirements.txt"),
    },
    entry_points={
        "console_scripts": [
            "swapguard=main:run",
        ],
    },
    include_package_data=True,
    package_data={
        "config": ["*.yaml"],
    },
    zip_safe=False,
    keywords=[
        "defi", "dex", "swap", "bridge", "wormhole", "aptos",
        "ethereum", "risk", "1inch", "web3"
    ],
)

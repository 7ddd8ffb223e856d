"""
Setup script for Bulk Job Orchestrator

An asyncio orchestration engine for remote asynchronous bulk jobs: streams
record uploads as CSV, polls batches until they settle and merges query
results into one record stream.
"""

from setuptools import setup, find_packages
import pathlib

here = pathlib.Path(__file__).parent.resolve()

# Get the long description from the README file
try:
    long_description = (here / "README.md").read_text(encoding="utf-8")
except FileNotFoundError:
    long_description = """
    Bulk Job Orchestrator

    An asyncio orchestration engine for remote asynchronous bulk jobs with
    streamed CSV uploads, batch polling and merged query result streams.
    """

setup(
    name="bulk-job-orchestrator",
    version="1.0.0",
    description="Async orchestration of remote bulk load and query jobs",
    long_description=long_description,
    long_description_content_type="text/markdown",
    author="Bulk Job Orchestrator Team",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    keywords="bulk api, csv, async, data loading, orchestration",
    packages=find_packages(exclude=["tests", "tests.*", "examples", "examples.*"]),
    python_requires=">=3.10",
    install_requires=[
        # Core dependencies
        "click>=8.0.0",

        # Additional async and networking
        "aiofiles>=23.1.0",
        "httpx>=0.24.0",

        # Configuration and serialization
        "pyyaml>=6.0",
        "pydantic>=2.0.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "black>=22.0.0",
            "isort>=5.10.0",
            "mypy>=1.0.0",
            "coverage>=6.0.0",
            "flake8>=5.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "bulk-job-orchestrator=bulk_job_orchestrator.cli.main:main",
            "bulkjob=bulk_job_orchestrator.cli.main:main",
        ],
    },
)

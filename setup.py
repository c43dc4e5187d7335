"""
Setup script for learnsight.

learnsight is a personal learning analytics and adaptive scheduling engine.
It serves three roles:

1. Pattern Analysis - Behavioral summaries from quiz and course history
2. Review Scheduling - Forgetting-curve driven spaced repetition
3. Adaptive Guidance - Cognitive load, flow and study recommendations

The 'learnsight' command is the primary entry point.
"""

from setuptools import find_packages, setup

setup(
    name="learnsight",
    version="0.1.0",
    description="Personal learning analytics and adaptive scheduling engine",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    author="Learnsight",
    packages=find_packages(include=["learnsight", "learnsight.*"]),
    py_modules=["config"],
    python_requires=">=3.11",
    install_requires=[
        # CLI
        "typer>=0.9.0",
        "rich>=13.0.0",
        # Database
        "sqlalchemy>=2.0.0",
        # Config & Validation
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        # Logging
        "loguru>=0.7.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "ruff>=0.1.0",
            "mypy>=1.0.0",
        ],
        "postgres": [
            "psycopg2-binary>=2.9.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "learnsight=learnsight.cli.main:run",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Intended Audience :: Education",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Education :: Computer Aided Instruction (CAI)",
    ],
    keywords="learning analytics spaced-repetition forgetting-curve cli education",
)

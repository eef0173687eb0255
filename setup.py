"""
Setup script for earwise.

earwise is a terminal ear-training companion. It schedules interval,
chord and chord-progression drills with:

1. SM-2 spaced repetition plus a per-card mastery estimate
2. Tiered unlocks gated by mastery and minimum practice
3. Due-first, weakest-next practice sessions

The 'earwise' command is the entry point.
"""

from setuptools import find_packages, setup

setup(
    name="earwise",
    version="1.0.0",
    description="Adaptive ear-training practice scheduler for the terminal",
    long_description=open("README.md", encoding="utf-8").read() if __import__("os").path.exists("README.md") else "",
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
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
    },
    entry_points={
        "console_scripts": [
            "earwise=earwise.cli.main:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: End Users/Desktop",
        "Intended Audience :: Education",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Education",
        "Topic :: Multimedia :: Sound/Audio",
    ],
    keywords="ear-training music spaced-repetition cli education",
)

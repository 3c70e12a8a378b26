"""Setup script for calendar_aggregator."""

from pathlib import Path

from setuptools import find_packages, setup

# Read the README file
readme_file = Path(__file__).parent / "README.md"
long_description = readme_file.read_text(encoding="utf-8") if readme_file.exists() else ""

# Read requirements, separating test dependencies
requirements_file = Path(__file__).parent / "requirements.txt"
requirements = []
test_requirements = []

if requirements_file.exists():
    for line in requirements_file.read_text().strip().split("\n"):
        line = line.strip()
        # Skip empty lines and comments
        if not line or line.startswith("#"):
            continue

        if "pytest" in line:
            test_requirements.append(line)
        else:
            requirements.append(line)

setup(
    name="calendar-aggregator",
    version="1.0.0",
    description="Aggregates iCalendar feed events and cron job schedules into one time-ordered list",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests*", "docs*"]),
    install_requires=requirements,
    extras_require={
        "test": test_requirements,
        "dev": test_requirements,
    },
    python_requires=">=3.11",
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Office/Business :: Scheduling",
        "Framework :: AsyncIO",
    ],
    keywords="calendar ics icalendar rrule cron aggregation async",
    entry_points={
        "console_scripts": [
            "calendar-aggregator=calendar_aggregator.__main__:main",
        ],
    },
    zip_safe=False,
)

"""
Setup configuration for REVIEW_STORE package.
"""

from pathlib import Path

from setuptools import find_packages, setup

# Read README for long description
readme_file = Path(__file__).parent / "README.md"
long_description = ""
if readme_file.exists():
    long_description = readme_file.read_text(encoding="utf-8")

setup(
    name="review-store",
    version="0.1.0",
    description="Schema-validated MongoDB collections with guarded CRUD access",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.10",
    install_requires=[
        "motor>=3.1.0",
        "pymongo>=4.2.0",
        "pydantic>=2.0.0",
        "jsonschema>=4.0.0",
        "click>=8.0.0",
        "python-dotenv>=1.0.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "mongomock-motor>=0.0.21",
            "testcontainers[mongodb]>=3.7.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "review-store=review_store.cli.main:cli",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Database",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    keywords="mongodb schema validation crud",
    include_package_data=True,
)

"""Setup configuration for Doc Index."""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as f:
    long_description = f.read()

setup(
    name="doc-index",
    version="0.1.0",
    author="Your Name",
    description="Incremental embedding cache and vector search for package documentation",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.9",
    install_requires=[
        "faiss-cpu>=1.8.0",
        "numpy>=1.24.0",
        "tqdm>=4.65.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "SQLAlchemy>=2.0.0",
        "langchain-core>=0.3.0",
        "langchain-community>=0.3.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
)

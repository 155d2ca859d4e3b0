from setuptools import setup, find_packages

# Read requirements
with open("requirements/base.txt") as f:
    base_requirements = f.read().splitlines()

setup(
    name="gherkin-core",
    version="0.1.0",
    author="Gherkin Core Contributors",
    description="Execution core for Gherkin scenarios: step matching, tag filters, hooks and runs",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Software Development :: Testing",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.11",
    ],
    python_requires=">=3.11",
    install_requires=base_requirements,
    extras_require={
        "test": ["pytest", "pytest-asyncio"],
        "dev": ["pytest", "pytest-asyncio", "black", "flake8", "mypy"],
    },
    entry_points={
        "console_scripts": [
            "gherkin-core=gherkin_core.cli:main",
        ],
    },
)

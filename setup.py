from setuptools import setup, find_packages

setup(
    name="json_to_csv",
    version="0.1.0",
    description="Normalize nested JSON records into relational CSV tables",
    author="bokuwagiga",
    url="https://github.com/bokuwagiga/json_to_sql",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "pandas>=1.5.0",
        "requests>=2.25.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "json-to-csv=JsonToCSV.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.8",
)

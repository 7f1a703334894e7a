from setuptools import setup, find_packages

setup(
    name="wakeslice",
    version="0.4.0",
    license="AGPL-3.0-or-later",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    python_requires=">=3.9",
    install_requires=[
        "click>=8.1",
        "numpy>=1.24",
        "scipy>=1.10",
        "pydantic>=2.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "wakeslice=wakeslice.cli:main",
        ],
    },
)

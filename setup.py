from setuptools import find_packages, setup

setup(
    name="backboard",
    version="0.1.0",
    description="Backport tracking for release branches: GitHub PR sync and commit reconciliation",
    packages=find_packages(include=["backboard", "backboard.*"]),
    include_package_data=True,
    python_requires=">=3.11",
    install_requires=[
        "pydantic>=2",
        "PyYAML>=6",
        "fastapi>=0.110",
    ],
    extras_require={
        "server": ["uvicorn>=0.29"],
        "test": ["pytest>=7", "httpx>=0.27"],
    },
    entry_points={"console_scripts": ["backboard=backboard.cli:main"]},
)

from setuptools import find_namespace_packages, setup

setup(
    name="powerbank-rental",
    version="0.1.0",
    packages=find_namespace_packages(
        include=["rental_store*", "booking_core*", "booking_worker*"]
    ),
    package_dir={"": "."},
    python_requires=">=3.9",
    install_requires=[
        "sqlalchemy>=2.0.0",
        "loguru>=0.7.0",
        "python-dotenv>=1.0.0",
        "fastapi>=0.100.0",
        "uvicorn>=0.23.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.0.0",
        "pybreaker>=1.0.0",
        "cachetools>=5.0.0",
        "requests>=2.31.0",
        "prometheus-client>=0.17.0",
        "prometheus-fastapi-instrumentator>=6.0.0",
        "psycopg2-binary>=2.9.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "httpx>=0.24.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "booking-core=booking_core.main:main",
            "booking-worker=booking_worker.main:main",
        ],
    },
)

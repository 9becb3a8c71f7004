"""
Setup configuration for TuneForge
"""
from setuptools import setup, find_packages

setup(
    name="tuneforge",
    version="1.0.0",
    description="Fine-tuning job coordination service",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    python_requires=">=3.10",
    install_requires=[
        "fastapi>=0.115.0",
        "uvicorn[standard]>=0.22.0",
        "orjson>=3.9.0",
        "sqlalchemy[asyncio]>=2.0.0",
        "asyncpg>=0.29.0",
        "pydantic>=2.0.0",
        "pydantic-settings>=2.7.0",
        "structlog>=23.1.0",
        "httpx>=0.27.0",
        "aioboto3>=12.0.0",
        "botocore>=1.31.0",
        "python-jose[cryptography]>=3.3.0",
        "opentelemetry-api>=1.20.0",
        "opentelemetry-sdk>=1.20.0",
        "opentelemetry-exporter-otlp-proto-grpc>=1.20.0",
        "opentelemetry-instrumentation-fastapi>=0.41b0",
        "opentelemetry-instrumentation-sqlalchemy>=0.41b0",
        "opentelemetry-instrumentation-httpx>=0.41b0",
    ],
    extras_require={
        "test": [
            "pytest>=7.0.0",
            "pytest-cov>=4.0.0",
            "pytest-asyncio>=0.21.0",
            "aiosqlite>=0.19.0",
        ],
        "dev": [
            "black>=23.0.0",
            "flake8>=6.0.0",
            "mypy>=1.0.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "tuneforge=tuneforge.main:main",
        ],
    },
)

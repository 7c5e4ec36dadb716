#!/usr/bin/env python3
# -*- coding: utf-8 -*-
"""
Setup configuration for the purchase settlement service.
"""

from setuptools import setup, find_namespace_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="purchase-settlement-service",
    version="0.1.0",
    author="isA Platform",
    author_email="dev@isa-platform.com",
    description="Purchase settlement microservice: stock reservation, idempotent orders and compensation",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_namespace_packages(include=["core", "core.*", "microservices", "microservices.*"]),
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    install_requires=[
        "fastapi>=0.100.0",
        "uvicorn>=0.23.0",
        "pydantic>=2.0.0",
        "asyncpg>=0.29.0",  # PostgreSQL async client
        "httpx>=0.24.0",
        "python-dotenv>=1.0.0",
        "tenacity>=8.0.0",
        "nats-py>=2.6.0",
    ],
    extras_require={
        "dev": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
            "black>=23.0.0",
            "flake8>=6.0.0",
            "mypy>=1.0.0",
        ],
        "test": [
            "pytest>=7.0.0",
            "pytest-asyncio>=0.21.0",
        ],
    },
    include_package_data=True,
    package_data={
        "microservices.purchase_service": ["migrations/*.sql"],
    },
)

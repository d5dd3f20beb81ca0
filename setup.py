"""Setup configuration for the two-phase cooling cart service."""

from setuptools import setup, find_packages

setup(
    name="twophase-cart-service",
    version="1.0.0",
    description="Session shopping cart with pricing, Redis storage and Kafka events",
    packages=find_packages(exclude=["tests", "tests.*"]),
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.109.0",
        "uvicorn>=0.27.0",
        "redis>=5.0.0",
        "confluent-kafka>=2.3.0",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
    ],
    extras_require={
        "test": [
            "pytest>=7.4",
            "httpx>=0.26.0",
        ],
    },
)

from setuptools import setup, find_packages

setup(
    name="joblock",
    version="0.1.0",
    description="Lease-based distributed locks for recurring jobs across pods",

    package_dir={"": "src"},
    packages=find_packages(where="src"),

    install_requires=[
        "asyncpg>=0.27.0",
        "pydantic>=2.0.0",
        "fastapi>=0.103.0",
        "uvicorn>=0.23.0",
        "click>=8.1.0",
        "pyyaml>=6.0",
        "prometheus-client>=0.16.0",
        "SQLAlchemy[asyncio]>=2.0.0",
        "structlog>=23.1.0",
    ],

    extras_require={
        "dev": [
            "pytest>=7.3.0",
            "pytest-asyncio>=0.21.0",
            "pytest-cov>=4.0.0",
            "aiosqlite>=0.19.0",
            "httpx>=0.24.0",
            "black>=23.3.0",
            "mypy>=1.3.0",
            "ruff>=0.0.270",
        ],
    },

    entry_points={
        "console_scripts": [
            "joblock=joblock.cli.main:main",
        ],
    },

    python_requires=">=3.11",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3.11",
    ],
)

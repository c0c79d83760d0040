"""
Thought Constellation Server - analysis, layout and narration of short thoughts
Setup configuration for pip installation
"""

from setuptools import setup, find_packages
from pathlib import Path

# Read README for long description
readme_path = Path(__file__).parent / "README.md"
long_description = readme_path.read_text() if readme_path.exists() else ""

setup(
    name="constellation-server",
    version="1.0.0",
    description="Thought constellation analysis and layout microservice",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["constellation", "constellation.*"]),
    package_data={"constellation.config": ["llm_policies.yaml"]},
    python_requires=">=3.11",
    install_requires=[
        "fastapi>=0.104.1",
        "uvicorn[standard]>=0.24.0",
        "pydantic>=2.5.0",
        "pydantic-settings>=2.1.0",
        "redis>=5.0.1",
        "httpx>=0.25.1",
        "numpy>=1.26.0",
        "pyyaml>=6.0",
        "scikit-learn>=1.3",
        "uvloop>=0.19.0; sys_platform != 'win32'",
    ],
    extras_require={
        "dev": [
            "pytest>=7.4.3",
            "pytest-asyncio>=0.21.1",
        ]
    },
    entry_points={
        "console_scripts": [
            "constellation-server=constellation.cli:main",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3.11",
        "License :: OSI Approved :: MIT License",
    ],
)

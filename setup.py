"""setuptools 打包配置。"""

from __future__ import annotations

from setuptools import find_packages, setup


VERSION = "0.1.0"


setup(
    name="screengate",
    version=VERSION,
    description="Restriction schedule evaluation and mindful activity selection engine",
    python_requires=">=3.10",
    packages=find_packages(where="src"),
    package_dir={"": "src"},
    include_package_data=True,
    install_requires=[
        "pydantic>=2.0",
        "fastapi>=0.100",
        "uvicorn>=0.23",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "httpx>=0.24",
        ],
    },
)

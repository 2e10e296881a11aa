from pathlib import Path
from setuptools import setup, find_packages

README = (Path(__file__).parent / "README.md").read_text(encoding="utf-8")

setup(
    name="byondlink",
    version="0.1.0",
    description="Client and listener for the BYOND world Topic protocol",
    long_description=README,
    long_description_content_type="text/markdown",
    packages=find_packages(include=("byondlink", "byondlink.*")),
    python_requires=">=3.9",
    install_requires=[
        "pygame>=2.5.0",
        "starlette>=0.27",
        "uvicorn>=0.29",
    ],
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "httpx>=0.24",
        ],
    },
    entry_points={
        "console_scripts": [
            "byondlink=byondlink.cli:main",
        ]
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3 :: Only",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "Topic :: Games/Entertainment",
        "Topic :: System :: Networking",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
)

import setuptools
from setuptools import find_packages

with open("readme.md", "r") as fh:
    long_description = fh.read()


vars2find = ["__author__", "__version__", "__url__"]
vars2readme = {}
with open("./backup_dashboard/__init__.py") as f:
    for line in f.readlines():
        for v in vars2find:
            if line.startswith(v):
                line = line.replace(" ", "").replace('"', "").replace("'", "").strip()
                vars2readme[v] = line.split("=", 1)[1]

core_deps = [
    "aioboto3",
    "boto3",
    "botocore",
    "tenacity",
    "croniter",
    "aiosmtplib",
    "pydantic>=2.0",
]

api_deps = [
    "fastapi>=0.100.0",
    "pydantic-settings>=2.0",
    "uvicorn",
]

setuptools.setup(
    name="backup-dashboard",
    url=vars2readme["__url__"],
    version=vars2readme["__version__"],
    author=vars2readme["__author__"],
    description="Backup, restore and disaster recovery for PostgreSQL with S3-compatible object storage",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["backup_dashboard", "backup_dashboard.*"]),
    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.9",
    install_requires=core_deps + api_deps,
    extras_require={
        "test": [
            "pytest>=7.0",
            "pytest-asyncio>=0.21",
            "httpx",
        ],
    },
)

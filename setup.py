from setuptools import setup, find_packages

setup(
    name="proof-of-agent",
    version="1.0.0",
    description="Behavioral verification, trust scoring and threshold proofs for AI agents",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    package_dir={"": "src"},
    packages=find_packages(where="src"),
    install_requires=[
        "pynacl>=1.5.0",
        "httpx>=0.24.0",
        "fastapi>=0.100.0",
        "pydantic>=2.0",
        "slowapi>=0.1.9",
        "python-json-logger>=3.1.0",
        "uvicorn>=0.22.0",
    ],
    extras_require={"dev": ["pytest>=7.0", "pytest-asyncio>=0.21", "respx>=0.20"]},
    entry_points={"console_scripts": ["poa=poa.cli:main"]},
    python_requires=">=3.9",
    license="CC0-1.0",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Topic :: Security",
        "Topic :: Software Development :: Libraries",
        "License :: CC0 1.0 Universal (CC0 1.0) Public Domain Dedication",
        "Programming Language :: Python :: 3",
    ],
    keywords="agent verification trust score attestation threshold-proof",
)

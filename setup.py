from setuptools import find_packages, setup

setup(
    name="grapnel",
    version="0.1.0",
    description="Pre and post hooks with sync, callback, parallel and thenable middleware",
    packages=find_packages(include=["grapnel", "grapnel.*"]),
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "pydantic>=2.0",
        "PyYAML>=6.0",
    ],
    extras_require={
        "test": ["pytest>=7.0"],
    },
    entry_points={
        "console_scripts": [
            "grapnel=grapnel.cli:main",
        ],
    },
)

from setuptools import setup, find_packages


setup(
    name="tarski",
    version="0.1",
    packages=find_packages(include=["tarski", "tarski.*"]),
    description="Create and extract tar archives preserving extended attributes, with tar-stream content hashes.",
    author="vercingetorx",
    python_requires=">=3.8",
    install_requires=[],
    entry_points={
        "console_scripts": [
            "tarski=tarski.cli:main",
        ]
    },
)

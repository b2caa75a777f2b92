"""
Setup script for the variantlab package.
"""

from pathlib import Path

from setuptools import find_packages, setup

# Read requirements.txt
requirements_path = Path(__file__).parent / "requirements" / "requirements.txt"
with open(requirements_path, "r") as f:
    # Filter out comments and empty lines
    install_requires = []
    for line in f:
        line = line.strip()
        if line and not line.startswith("#"):
            install_requires.append(line)

# Read long description from README.md if it exists
long_description = ""
readme_path = Path(__file__).parent / "README.md"
if readme_path.exists():
    with open(readme_path, "r") as f:
        long_description = f.read()

setup(
    name="variantlab",
    version="0.1.0",
    description="A/B testing engine for generated landing-page variants",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(include=["variantlab", "variantlab.*"]),
    include_package_data=True,
    package_data={"variantlab.ab_testing": ["templates/*.j2"]},
    python_requires=">=3.9",
    install_requires=install_requires,
    extras_require={
        "dev": [
            "pytest>=7.4.0",
            "pytest-bdd>=6.1.1",
            "pytest-cov>=4.1.0",
            "pytest-mock>=3.11.1",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Topic :: Software Development :: Libraries",
    ],
)

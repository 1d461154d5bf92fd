# setup.py
from setuptools import setup, find_packages
from pathlib import Path
this_directory = Path(__file__).parent
long_description = (this_directory / "README.md").read_text(encoding="utf-8")

setup(
    name="parapdf",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages(where="src", include=["parapdf", "parapdf.*"]),
    author="Phuoc Nguyen",
    description="Parallel page-by-page LLM analysis of PDF documents, with retries and cost tracking.",
    long_description=long_description,
    long_description_content_type='text/markdown',
    python_requires=">=3.9",

    install_requires=[
        "PyMuPDF",
        "Pillow",
        "tqdm",
        "python-slugify",
        "anthropic",
        "python-dotenv",
    ],
    extras_require={
        "test": ["pytest", "httpx"],
    },
    entry_points={
        'console_scripts': [
            'parapdf=parapdf.cli:main',
        ],
    },
)

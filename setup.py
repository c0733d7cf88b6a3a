from setuptools import setup, find_packages
from pathlib import Path

setup(
    name="docmark",
    version=Path("./docmark/VERSION").read_text().strip(),
    description="Annotation canvas engine for documentation screenshots",
    packages=find_packages(include=["docmark", "docmark.*"]),
    package_data={"docmark": ["VERSION"]},
    python_requires=">=3.8",
    install_requires=[
        "numpy",
        "opencv-python",
        "matplotlib",
        "easydict",
        "Pillow",
    ],
    extras_require={
        "test": ["pytest"],
    },
    entry_points={
        "console_scripts": ["docmark=docmark.cli:main"],
    },
)

from setuptools import find_packages, setup

setup(
    name="structseg",
    version="0.1.0",
    description="Structural segmentation of audio using constant-Q features and HMM state clustering.",
    packages=find_packages(include=["structseg", "structseg.*"]),
    python_requires=">=3.9",
    install_requires=[
        "numpy",
        "scipy",
        "pandas",
        "librosa",
        "soundfile",
        "scikit-learn",
        "pydantic>=2",
        "toml",
        "click",
        "rich",
    ],
    extras_require={
        "test": [
            "pytest",
            "pytest-mock",
        ],
    },
    entry_points={
        "console_scripts": [
            "structseg=structseg.cli.main:cli",
        ],
    },
)

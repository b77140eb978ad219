from setuptools import setup, find_packages

setup(
    name="fabisearch",
    version="0.1.0",
    description="Factorized binary search: NMF-based change point detection for multivariate time series, in PyTorch.",
    author="fabisearch contributors",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "torch",  # Ensure that users have PyTorch installed.
        "numpy",
        "scipy",
        "statsmodels",
        "pydantic>=2",
        "tqdm",
    ],
    extras_require={
        "test": ["pytest"],
    },
    classifiers=[
        "Programming Language :: Python :: 3",
        "Operating System :: OS Independent",
    ],
    python_requires=">=3.9",
)

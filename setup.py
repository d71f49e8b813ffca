# setup.py
from setuptools import setup, find_packages

setup(
    name="ngram-trends",
    version="0.1.0",
    description="Decade-over-decade usage trends from yearly n-gram counts",
    package_dir={"": "src"},
    packages=find_packages("src"),
    python_requires=">=3.9",
    install_requires=[
        "rocksdict",
        "setproctitle",
        "tqdm",
    ],
    extras_require={
        "test": ["pytest"],
    },
    scripts=["scripts/run_trends.py"],
)

from setuptools import setup, find_packages

setup(
    name="dapipe",
    version="0.1",
    description="Data analysis pipelines: fetch, lemmatize, score, classify, tune and scrape",
    license="Apache 2",
    python_requires=">= 3.9",
    packages=find_packages(exclude=["test", "test.*"]),
    install_requires=[
        "click >= 7.0",
        "numpy >= 1.20",
        "pandas >= 1.3",
        "scikit-learn >= 1.0",
        "spacy >= 3.0",
        "lxml >= 4.6",
        "cssselect >= 1.1",
        "joblib >= 1.0",
    ],
    extras_require={
        "test": ["pytest"],
        "dev": ["mypy", "pytest"],
    },
    entry_points={
        "console_scripts": [
            "dapipe = dapipe.__main__:cli"
        ]
    },
    zip_safe=False,
    include_package_data=True,
)

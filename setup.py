#!/usr/bin/env python3
"""
Setup script for ConceptExplorer package.
"""

from setuptools import setup, find_packages

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setup(
    name="juror-concept-explorer",
    version="0.1.0",
    description="Concept extraction, embedding and evidence graphs from juror feedback",
    long_description=long_description,
    long_description_content_type="text/markdown",
    packages=find_packages(),
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Science/Research",
        "Topic :: Scientific/Engineering :: Information Analysis",
        "Topic :: Text Processing :: Linguistic",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.8",
    install_requires=[
        "numpy>=1.19.0",
        "scipy>=1.5",         # Average-linkage dendrogram and cuts
        "scikit-learn>=1.0",  # Adjusted Rand index for stability scores
        "networkx>=2.5",      # Bridge detection in the evidence graph
        "rank-bm25>=0.2.2",   # Okapi BM25 for evidence ranking
    ],
    extras_require={
        "dev": [
            "pytest>=6.0",
            "black>=21.0",
        ],
    },
    entry_points={
        "console_scripts": [
            "concept-explorer=concept_explorer.core:main",
        ],
    },
    keywords=[
        "sentence-embeddings",
        "clustering",
        "concept-extraction",
        "pca",
        "hyperparameter-search",
        "feedback-analysis",
        "nlp",
    ],
)

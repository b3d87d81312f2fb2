#!/usr/bin/env python3
"""
Setup script for Financial Report RAG
"""

from setuptools import setup, find_packages
import os

# Read the README file for long description
def read_readme():
    readme_path = os.path.join(os.path.dirname(__file__), 'README.md')
    if os.path.exists(readme_path):
        with open(readme_path, 'r', encoding='utf-8') as f:
            return f.read()
    return "Financial Report RAG - Filing-grounded financial analysis reports from SEC filings"

# Read requirements
def read_requirements():
    req_path = os.path.join(os.path.dirname(__file__), 'financial_report_rag', 'requirements.txt')
    if os.path.exists(req_path):
        with open(req_path, 'r', encoding='utf-8') as f:
            return [line.strip() for line in f if line.strip() and not line.startswith('#')]
    return []

setup(
    name="financial-report-rag",
    version="1.0.0",
    description="Filing-grounded financial analysis reports with verifiable metrics and citations",
    long_description=read_readme(),
    long_description_content_type="text/markdown",
    author="Financial RAG Team",
    author_email="",
    url="",
    packages=find_packages(exclude=["tests", "tests.*"]),
    include_package_data=True,
    package_data={"financial_report_rag": ["requirements.txt"]},
    install_requires=read_requirements(),
    extras_require={
        'test': [
            'pytest>=7.4.0',
            'pytest-asyncio>=0.23.0',
        ],
    },
    entry_points={
        'console_scripts': [
            'financial-rag=financial_report_rag.cli:cli',
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: Financial and Insurance Industry",
        "Topic :: Office/Business :: Financial",
        "Topic :: Scientific/Engineering :: Information Analysis",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
    ],
    python_requires=">=3.9",
    keywords="financial analysis, RAG, SEC filings, EDGAR, LLM",
)

from setuptools import setup, find_packages

setup(
    name="cmarkdoc",
    version="1.0.0",
    description="Markdown API documentation from Doxygen-style C comments",
    keywords="c doxygen markdown mkdocs documentation libclang",
    packages=find_packages(exclude=["tests", "tests.*"]),
    install_requires=[
        "mkdocs>=1.4",
    ],
    extras_require={
        "clang": ["libclang>=16"],
        "test": ["pytest"],
    },
    classifiers = [
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: MIT License",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Documentation",
        "Topic :: Software Development :: Documentation",
        "Framework :: MkDocs",
    ],
    entry_points={
        "console_scripts": [
            "cmarkdoc = cmarkdoc.cli:main",
        ],
        "mkdocs.plugins": [
            "cmarkdoc = cmarkdoc.plugin:CmarkdocPlugin",
        ],
    },
)

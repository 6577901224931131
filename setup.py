from setuptools import setup, find_packages

setup(
    name="psl",
    packages=find_packages(exclude=["tests", "tests.*"]),
    py_modules=["pslc"],
    install_requires=open("requirements.txt", "r").readlines(),
    python_requires=">=3.6",
    author="Matthäus G. Chajdas",
    author_email="dev@anteru.net",
    description="Pipeline Shading Language cross-compiler",
    long_description=open("Readme.md", "r").read(),
    long_description_content_type="text/markdown",
    license="BSD",
    keywords=["shader", "glsl", "hlsl", "compiler"],
    url="http://shelter13.net/projects/psl",
    entry_points="""
        [console_scripts]
        pslc=pslc:main
    """,
    tests_require=["pytest"],
    extras_require={
        "dev": [
            "flake8",
            "flake8-mypy",
        ],
        "test": [
            "pytest",
        ],
    },
    classifiers=[
        "Development Status :: 4 - Beta",
        "Environment :: Console",
        "Intended Audience :: Developers",
        "License :: OSI Approved :: BSD License",
        "Natural Language :: English",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3",
        "Topic :: Software Development :: Compilers",
    ],
)

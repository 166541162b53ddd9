from setuptools import setup, find_packages

setup(
    name="param-sweep-framework",
    version="0.1.0",
    description="Cross-backend numerical equivalence sweeps for tensor kernels",
    author="Research Team",
    packages=find_packages(include=["param_sweep", "param_sweep.*"]),
    install_requires=[
        "torch>=1.10.0",
        "numpy>=1.20.0",
        "pytest>=6.0.0",
    ],
    python_requires=">=3.8",
    classifiers=[
        "Development Status :: 3 - Alpha",
        "Intended Audience :: Developers",
        "Programming Language :: Python :: 3",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
    ],
)

from setuptools import setup, find_packages
setup(
    name="fedresurs_leasing",
    version="0.1.0",
    package_dir={"": "src"},
    packages=find_packages("src"),
    include_package_data=True,
    python_requires=">=3.10",
    install_requires=[
        "requests>=2.28",
        "pydantic>=2.0",
    ],
    extras_require={
        "test": ["pytest>=7"],
    },
    entry_points={
        'console_scripts': [
            'fedresurs_leasing=fedresurs_leasing.__main__:_safe_main'
        ]
    }
)

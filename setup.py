from setuptools import setup

setup(
    name="hyperblade",
    version="0.1.0",
    description="Component, macro and directive preprocessor for Python-flavoured templates",
    long_description=open("README.md").read(),
    long_description_content_type="text/markdown",
    packages=['hyperblade'],
    python_requires=">=3.8",
    install_requires=[
        "watchdog",
        "pyyaml"
    ],
    extras_require={
        "test": ["pytest"],
    },
)

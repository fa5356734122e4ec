#!/usr/bin/env python3
from setuptools import setup

import audiozone.const as audiozone_const

NAME = "audiozone"
DESCRIPTION = "Audio zone power and volume accessories for a Homebridge style host bridge"
URL = "https://github.com/audiozone/{}".format(NAME)
AUTHOR = "AudioZone contributors"


PROJECT_URLS = {
    "Bug Reports": "{}/issues".format(URL),
    "Source": "{}/tree/master".format(URL),
}


MIN_PY_VERSION = ".".join(map(str, audiozone_const.REQUIRED_PYTHON_VER))

with open("README.md", "r", encoding="utf-8") as f:
    README = f.read()


REQUIRES = ["zeroconf>=0.32.0", "h11", "async_timeout"]


setup(
    name=NAME,
    version=audiozone_const.__version__,
    description=DESCRIPTION,
    long_description=README,
    long_description_content_type="text/markdown",
    url=URL,
    author=AUTHOR,
    packages=["audiozone"],
    package_data={"audiozone": ["resources/*.json"]},
    include_package_data=True,
    project_urls=PROJECT_URLS,
    python_requires=">={}".format(MIN_PY_VERSION),
    install_requires=REQUIRES,
    classifiers=[
        "Development Status :: 4 - Beta",
        "Intended Audience :: Developers",
        "Intended Audience :: End Users/Desktop",
        "Natural Language :: English",
        "Operating System :: OS Independent",
        "Programming Language :: Python :: 3.8",
        "Programming Language :: Python :: 3.9",
        "Programming Language :: Python :: 3.10",
        "Programming Language :: Python :: 3.11",
        "Programming Language :: Python :: 3.12",
        "Topic :: Home Automation",
        "Topic :: Software Development :: Libraries :: Python Modules",
    ],
    extras_require={
        "test": ["pytest", "pytest-asyncio"],
    },
)

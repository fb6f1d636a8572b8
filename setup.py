# setup.py needed in order to have a pip editable install
from setuptools import setup

setup(include_package_data=True)  # config is in setup.cfg

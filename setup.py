# setup.py
from setuptools import setup, find_packages

setup(
    name='svsim',
    version='0.3.0',
    description='Statevector quantum circuit simulator with mid-circuit classical feedback',
    packages=find_packages(exclude=['tests', 'tests.*']),
    python_requires='>=3.8',
    install_requires=['numpy>=1.20'],
    extras_require={'test': ['pytest']},
)

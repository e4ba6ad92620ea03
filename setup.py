from setuptools import find_packages, setup

setup(
    name='maraxporter',
    version='1.0.0',
    description='Prometheus exporter for the Lelit Mara X serial status port',
    author='',
    author_email='',
    packages=find_packages(include=['maraxporter', 'maraxporter.*']),
    python_requires='>=3.12',
    install_requires=[
        'marshmallow',
        'msgspec',
        'prometheus-client',
        'pyserial-asyncio-fast',
        'tenacity',
        'uvloop',
    ],
    extras_require={
        'test': [
            'pytest',
            'pytest-asyncio',
        ],
    },
    entry_points={
        'console_scripts': [
            'maraxporter=maraxporter.daemon:main',
        ],
    },
    classifiers=[
        'Programming Language :: Python :: 3',
        'Operating System :: POSIX :: Linux',
    ],
)

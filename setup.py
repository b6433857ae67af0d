from setuptools import setup, find_namespace_packages

setup(
    name='checkup',
    version='0.1.0',
    description='Caching proxy for GitHub, GitLab, Forgejo and cgit release listings',
    package_dir={'': 'src'},
    packages=find_namespace_packages(where='src', include=['checkup', 'checkup.*']),
    package_data={'checkup': ['templates/*.j2']},
    python_requires='>=3.10',
    install_requires=[
        'aiohttp>=3.9',
        'beautifulsoup4',
        'Jinja2',
        'platformdirs',
        'PyYAML',
        'rich',
    ],
    extras_require={
        'test': [
            'pytest<9.1',
            'pytest-asyncio',
            'pytest-mock',
        ],
    },
    entry_points={
        'console_scripts': [
            'checkup=checkup.cli:main',
        ],
    },
)

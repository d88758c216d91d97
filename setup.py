from setuptools import setup, find_packages
from pathlib import Path

package_name = 'nats-streaming-operator'
description = (
    'A Kubernetes Operator for running NATS Streaming server clusters, '
    'clustered with Raft or paired for fault tolerance.'
)
author = 'The NATS Authors'
author_email = 'info@nats.io'
license = 'Apache-2.0'
url = 'https://github.com/nats-io/nats-streaming-operator'
pypi_classifiers = [
    'Development Status :: 4 - Beta',
    'Programming Language :: Python :: 3.10',
    'Programming Language :: Python :: 3.11',
    'Programming Language :: Python :: 3.12',
]
keywords = ['nats', 'kubernetes', 'operator']
readme = Path(__file__).parent / 'README.rst'

# Core dependencies
install_requires = [
    'click>=8.1',
    'kopf>=1.37',
    'kubernetes>=29.0.0',
    'structlog>=24.1.0',
]

# Test dependencies
tests_require = [
    'pytest>=8.0',
    'PyYAML>=6.0',
]
tests_require += install_requires

# Optional dependencies (like for dev)
extras_require = {
    'test': tests_require,
    # For development environments
    'dev': tests_require,
}

setup(
    name=package_name,
    description=description,
    long_description=readme.read_text(),
    long_description_content_type='text/x-rst',
    author=author,
    author_email=author_email,
    url=url,
    license=license,
    classifiers=pypi_classifiers,
    keywords=keywords,
    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    python_requires='>=3.10',
    install_requires=install_requires,
    extras_require=extras_require,
    entry_points={
        'console_scripts': [
            'nats-streaming-operator = natsstreamingoperator.cli:main',
        ],
    },
    use_scm_version={'fallback_version': '0.1.0'},
    include_package_data=True
)

from setuptools import setup, find_packages

setup(
    name='cert-scan',
    version='1.0.0',
    description='Pluggable TLS certificate chain scanners with pass/warn/fail grades',
    license='MIT',
    package_dir={'': 'src'},
    packages=find_packages(where='src'),
    python_requires='>=3.8',
    install_requires=[
        'cryptography>=42',
        'coloredlogs',
        'shtab',
    ],
    extras_require={
        'test': ['pytest'],
    },
    entry_points={
        'console_scripts': [
            'cert-scan = cert_scan.main:main',
        ],
    },
)

from setuptools import find_packages
from setuptools import setup

version = '0.1.0'

install_requires = [
    'configobj>=5.0.6',
    'cryptography>=43.0.0',
    'josepy>=1.13.0',
    'requests>=2.20.0',
    'tenacity>=8.2.0',
]

test_extras = [
    'pytest',
    'pytest-xdist',
]

setup(
    name='digicert-dcv',
    version=version,
    description='DigiCert CertCentral and AliCloud DNS clients with DNS domain validation',
    long_description=open('README.rst').read(),
    license='Apache License 2.0',
    python_requires='>=3.9',
    classifiers=[
        'Development Status :: 3 - Alpha',
        'Intended Audience :: Developers',
        'Intended Audience :: System Administrators',
        'License :: OSI Approved :: Apache Software License',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.9',
        'Programming Language :: Python :: 3.10',
        'Programming Language :: Python :: 3.11',
        'Programming Language :: Python :: 3.12',
        'Programming Language :: Python :: 3.13',
        'Topic :: Internet :: Name Service (DNS)',
        'Topic :: Security',
    ],

    packages=find_packages(where='src'),
    package_dir={'': 'src'},
    include_package_data=True,
    install_requires=install_requires,
    extras_require={
        'test': test_extras,
    },
)

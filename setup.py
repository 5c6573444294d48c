#!/usr/bin/env python3
from setuptools import setup

setup(
    name='store-couchdb',
    version='0.1.0',
    license='GNU Affero GPL v3',
    description='a convenient CouchDB client: documents, views, attachments '
                'and database maintenance',
    long_description=open('README.rst').read(),
    python_requires='>=3.6',
    install_requires=[],
    packages=[
        'storecouch',
    ],
    package_dir={'': 'src'},
    classifiers=[
        'Development Status :: 3 - Alpha',
        'License :: OSI Approved :: GNU Affero General Public License v3',
        'Operating System :: OS Independent',
        'Programming Language :: Python :: 3',
        'Topic :: Database',
        'Topic :: Database :: Front-Ends',
        'Topic :: Software Development :: Libraries',
    ],
)

# SPDX-License-Identifier: LGPL-3.0-or-later
# plb - a programmable library build engine
# Copyright (C) 2020 Daniel Lutz <dlu-ch@users.noreply.github.com>

"""A setuptools based setup module.

See:
https://packaging.python.org/en/latest/distributing.html
https://github.com/pypa/sampleproject
"""

import re
import os.path
import setuptools


def read_version(*, src_path):
    version_path = os.path.join(src_path, 'plb', 'version.py')

    with open(version_path, 'rb') as f:
        content = f.read()

    m = re.search(br"\n__version__ = '([^'\r\n]+)'", content)
    assert m, '__version__ line not found'
    return m.group(1).decode()


src_path = os.path.join(os.path.dirname(os.path.abspath(__file__)), 'src')

setuptools.setup(
    name='plb',

    # Versions should comply with PEP440.  For a discussion on single-sourcing
    # the version across setup.py and the project code, see
    # https://packaging.python.org/en/latest/single_source_version.html
    version=read_version(src_path=src_path),

    description='A programmable library build engine',
    long_description=(
        "plb builds many static C and C++ libraries from a Python script: incrementally, with a compile cache "
        "keyed by the hash of the preprocessed source and the compile command, and in parallel."
    ),

    # Author details
    author='dlu-ch',
    author_email='dlu-ch@users.noreply.github.com',

    # Choose your license
    license='LGPLv3+',

    # See https://pypi.org/pypi?%3Aaction=list_classifiers
    classifiers=[
        'Development Status :: 3 - Alpha',

        'Intended Audience :: Developers',
        'Topic :: Software Development :: Build Tools',
        'Operating System :: OS Independent',
        'Environment :: Console',

        'License :: OSI Approved :: GNU Lesser General Public License v3 or later (LGPLv3+)',

        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
        'Programming Language :: Python :: 3.9'
    ],

    zip_safe=True,

    keywords='build development static-library compile-cache',

    python_requires='>=3.8',

    # https://docs.python.org/3/distutils/setupscript.html#listing-whole-packages
    package_dir={'': 'src'},

    # 'plb_contrib' is a namespace package
    packages=setuptools.find_namespace_packages(where='src', include=['plb', 'plb.*', 'plb_contrib']),

    # List run-time dependencies here.  These will be installed by pip when
    # your project is installed.
    install_requires=[],

    # $ pip install -e .[test]
    extras_require={
        'test': ['pytest']
    },

    package_data={},

    data_files=[],

    entry_points={
        'console_scripts': ['plb=plb.launcher:main'],
    },
)

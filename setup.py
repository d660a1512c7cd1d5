from setuptools import setup, find_packages

from patchhistory import __version__
from patchhistory import __description__
from patchhistory import __doc__ as __long_description__

setup(
    name = 'patchhistory',
    version = __version__,
    packages = find_packages(),
    install_requires = [
        'SQLAlchemy>=2.0',
        ],
    extras_require = {
        'test': ['pytest'],
        },

    # metadata for upload to PyPI
    description = __description__,
    long_description = __long_description__,
    license = "MIT",
    keywords = "versioning history json-patch rollback sqlalchemy orm",
    zip_safe = False,
    python_requires = '>=3.8',
    classifiers = [
        'Development Status :: 4 - Beta',
        'Environment :: Console',
        'Intended Audience :: Developers',
        'License :: OSI Approved :: MIT License',
        'Operating System :: OS Independent',
        'Programming Language :: Python',
        'Programming Language :: Python :: 3',
        'Topic :: Database',
        'Topic :: Software Development :: Libraries :: Python Modules'],
)

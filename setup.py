"""jksread decodes Java KeyStore (JKS, version 2) files in pure Python,
without a JVM. It lists trusted certificates and private key entries,
parses their X.509 certificates, and can decrypt JKS-protected private
keys. Simply::

  pip install pyjksread

Then::

  import jksread

  store = jksread.KeyStore.load('keystore.jks', jksread.Options('passphrase'))

  for entry in store.certs:
      print(entry.alias, entry.certificate.subject_common_name)

  key = store.decrypt('mykey')

"""

from setuptools import setup, find_packages


setup(
    name='pyjksread',
    version='0.1.0',
    description='Pure-Python Java KeyStore (JKS) reader',
    keywords="JKS java keystore certificate x509 security ssl",
    license="MIT",
    long_description=__doc__,
    classifiers=[
        'Development Status :: 4 - Beta',
        'License :: OSI Approved :: MIT License',
        'Topic :: Utilities',
        'Topic :: Software Development :: Libraries',
        'Intended Audience :: Developers',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: Implementation :: PyPy',
    ],
    packages=find_packages(exclude=['tests']),
    python_requires='>=3.6',
    install_requires=['pyasn1>=0.4.1',
                      'pyasn1_modules'],
    extras_require={'test': ['pytest']},
    test_suite="tests.test_jks",
)


"""
Releasing:

* Update version in setup.py, as well as __version__ and __version_info__ in jks.py
* Final test (python -m unittest)
* Commit: "bumping version for x.x.x release"
* Run: python setup.py sdist bdist_wheel, then twine upload dist/*
* git tag -a vx.x.x -m "summary"
* Update versions again for dev
* git push && git push --tags
"""

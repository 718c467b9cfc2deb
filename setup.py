from setuptools import setup


setup(name='bitcoinharness',
      version='0.1.0',
      description='Async bitcoind JSON-RPC client with collaborative PSBT '
                  'funding, and regtest helpers',
      url='https://github.com/bitcoin-harness/bitcoin-harness',
      author='',
      author_email='',
      license='GPL',
      packages=['bhbase', 'bhbitcoin', 'bhclient'],
      package_dir={'bhbase': 'bhbase/bhbase',
                   'bhbitcoin': 'bhbitcoin/bhbitcoin',
                   'bhclient': 'bhclient/bhclient'},
      install_requires=['twisted>=22.4.0', 'chromalog>=1.0.5',
                        'colorama>=0.4.4', 'python-bitcointx>=1.1.3'],
      extras_require={'test': ['pytest>=6.2.5']},
      python_requires='>=3.7',
      zip_safe=False)

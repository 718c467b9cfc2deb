from setuptools import setup


setup(name='bitcoinharnessclient',
      version='0.1.0',
      description='Async bitcoind JSON-RPC client with collaborative PSBT '
                  'funding',
      url='https://github.com/bitcoin-harness/bitcoin-harness/tree/master/bhclient',
      author='',
      author_email='',
      license='GPL',
      packages=['bhclient'],
      install_requires=['bitcoinharnessbase==0.1.0',
                        'bitcoinharnessbitcoin==0.1.0'],
      python_requires='>=3.7',
      zip_safe=False)

from setuptools import setup


setup(name='bitcoinharnessbitcoin',
      version='0.1.0',
      description='Amount and PSBT helpers for bitcoin-harness',
      url='https://github.com/bitcoin-harness/bitcoin-harness/tree/master/bhbitcoin',
      author='',
      author_email='',
      license='GPL',
      packages=['bhbitcoin'],
      python_requires='>=3.7',
      install_requires=['bitcoinharnessbase==0.1.0',
                        'python-bitcointx>=1.1.3'],
      zip_safe=False)

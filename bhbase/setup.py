from setuptools import setup


setup(name='bitcoinharnessbase',
      version='0.1.0',
      description='Logging, hex and Twisted helpers for bitcoin-harness',
      url='https://github.com/bitcoin-harness/bitcoin-harness/tree/master/bhbase',
      author='',
      author_email='',
      license='GPL',
      packages=['bhbase'],
      install_requires=['twisted>=22.4.0', 'chromalog>=1.0.5',
                        'colorama>=0.4.4'],
      python_requires='>=3.7',
      zip_safe=False)

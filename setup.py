from setuptools import setup
from pathlib import Path

root_dir = Path(__file__).parent
readme = (root_dir / 'README.md').read_text()

setup(name='dftpack'
	,version='0.1.0'
	,description='Classical Density Functional Theory for density profiles at walls, interfaces and in pores'
	,long_description=readme
	,long_description_content_type='text/markdown'
	,packages=['dftpack']
	,python_requires='>=3.9'
	,install_requires=['numpy~=2.0',
	                   'scipy~=1.11',
	                   'jax~=0.4',
	                   'thermopack~=2.2']
	,extras_require={'test': ['pytest']}
	)

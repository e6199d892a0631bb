from setuptools import setup

setup(
    name='solar-position',
    version='2.0.0',
    url='https://github.com/nastasi/sun-position',
    author='Matteo Nastasi',
    author_email='nastasi@alternativeoutput.it',
    description='NREL solar position algorithm with delta T estimation and sunrise, transit, and sunset times',
    py_modules=['solarposition'],
    python_requires='>=3.9',
    install_requires=['numpy >= 1.19.4'],
    extras_require={
        'test': ['pytest', 'hypothesis', 'pytz'],
    },
    entry_points={
        'console_scripts': ['solarposition=solarposition:main'],
    },
)

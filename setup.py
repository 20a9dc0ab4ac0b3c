"""Install the conference submission core package.

The package lives under ``core/``; the tests are packaged along with it.
"""

from setuptools import setup, find_packages

setup(
    name='conference-submission-core',
    version='0.3.0',
    package_dir={'': 'core'},
    packages=find_packages(where='core'),
    zip_safe=False,
    python_requires='>=3.8',
    install_requires=[
        'flask>=2.2',
        'werkzeug>=2.2',
        'bleach>=6.0',
        'python-dateutil',
        'sqlalchemy>=1.4',
        'flask-sqlalchemy>=3.0',
        'requests>=2.28',
        'retry>=0.9.2',
        'pytz',
        'pyjwt>=2.0'
    ],
    extras_require={
        'test': [
            'pytest',
            'mimesis>=6.0',
        ]
    },
    include_package_data=True
)

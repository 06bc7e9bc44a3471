"""Install the strictsession package."""

from setuptools import setup, find_packages

setup(
    name='strictsession',
    version='0.1.0',
    packages=find_packages(include=['strictsession', 'strictsession.*'],
                           exclude=['*test*']),
    install_requires=[
        "flask",
        "pytz",
        "redis",
        "retry",
        "python-json-logger"
    ],
    extras_require={
        'fake': ["fakeredis"],
        'test': ["pytest", "hypothesis", "fakeredis"]
    },
    zip_safe=False
)

from setuptools import setup, find_namespace_packages

setup(
    name='atmfjstc-zip-vfs',
    version='0.1.0',

    author_email='atmfjstc@protonmail.com',

    package_dir={'': 'src'},
    packages=find_namespace_packages(where='src', include=['atmfjstc.lib.*']),

    install_requires=[
        'atmfjstc-async-utils>=0.1.0, <2',
        'atmfjstc-binary-utils>=1.2.0, <2',
        'atmfjstc-error-utils>=1.3.0, <2',
    ],

    extras_require={
        'test': [
            'pytest',
        ],
    },

    zip_safe=True,

    description="Random-access reader for ZIP archives with a filesystem-like interface",

    classifiers=[
        "Programming Language :: Python :: 3",
        "License :: OSI Approved :: MIT License",
        "Operating System :: POSIX",
        "Topic :: System :: Archiving",
        "Topic :: System :: Filesystems",
        "Framework :: AsyncIO",
        "Typing :: Typed",
    ],
    python_requires='>=3.9',
)

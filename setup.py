import setuptools

with open("README.md", "r", encoding="utf-8") as fh:
    long_description = fh.read()

setuptools.setup(
    name="quickslicer",
    version="0.0.2",
    author="Hannah Pullen",
    author_email="hp346@cam.ac.uk",
    description="Extract 2D slices from MetaImage volumes",
    long_description=long_description,
    long_description_content_type="text/markdown",
    url="",
    packages=setuptools.find_packages(exclude=["tests", "tests.*"]),
    package_data={"quickslicer": ["settings/*.ini"]},
    python_requires=">=3.8",
    install_requires=[
                      'matplotlib',
                      'nibabel',
                      'numpy',
                      'Pillow',
                     ],
    extras_require={
        'test': ['pytest'],
    },
    classifiers=[
        'Development Status :: 1 - Planning',
        'Intended Audience :: Science/Research',
        'License :: OSI Approved :: MIT License',
        'Operating System :: POSIX :: Linux',
        'Programming Language :: Python :: 3',
        'Programming Language :: Python :: 3.8',
    ],
)

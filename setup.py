from setuptools import find_packages, setup

setup(
    name="poremat",
    version="0.1.0",
    description="Crystal structures of porous materials for molecular simulation",
    package_dir={"": "src"},
    packages=find_packages("src"),
    package_data={"poremat.tests": ["test_files/*"]},
    python_requires=">=3.8",
    install_requires=["numpy", "scipy"],
    extras_require={
        "test": ["pytest", "pyvista"],
        "vtk": ["pyvista"],
        "docs": ["sphinx", "myst-parser", "furo"],
    },
)

"""
Format handling utilities for the crystal structure file formats.
"""

from . import cif, cssr, vtk, xyz_file

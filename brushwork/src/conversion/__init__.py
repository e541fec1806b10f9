"""
VMF to geometry conversion package.

Reads VMF maps (KeyValues syntax), clips brushes into polyhedra, meshes
displacements and produces render buffers or OBJ files.
"""

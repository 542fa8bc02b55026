"""
PoB build import core.

Turns Path of Building share codes into structured builds, and compares
passive tree snapshots for the leveling overlay.

    from buildcore.passive_tree import TreeRegistry
    from buildcore.pob import import_build

    trees = TreeRegistry.from_directory(data_dir, ["3_25"])
    result = import_build(code, trees)
"""

__version__ = "1.0.0"

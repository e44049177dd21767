VERSION = "0.3.0"


def version_info() -> str:
    """
    .. versionadded:: 0.1.0

    Debug convenience function to give version, platform and runtime information,
    including the versions of the numerical libraries the integrations depend on.
    """
    import pathlib
    import platform
    import sys

    import numpy
    import scipy

    info = {
        "EQUIBS version": VERSION,
        "Install path": pathlib.Path(__file__).resolve().parent,
        "Python version": platform.python_version(),
        "Python implementation": f"{platform.python_implementation()} ({sys.version})",
        "NumPy version": numpy.__version__,
        "SciPy version": scipy.__version__,
        "Platform": platform.platform(),
    }
    return "\n".join(f"{key + ':':>24} {str(value).replace(chr(10), ' ')}" for key, value in info.items())

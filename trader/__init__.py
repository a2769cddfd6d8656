"""Top-level package for the Aster trading client.

This file ensures that the ``trader`` directory is treated as a Python
package, allowing imports such as ``trader.src.trader`` to resolve
correctly when running tests, scripts or other tooling.
"""

__all__ = []

"""
Make `src` a package under `trader`.

This file is intentionally empty but necessary for Python to treat
`trader/src` as a package so that modules under it (e.g.
`trader.src.trader`) can be imported using the dotted path.
"""
__all__ = []
